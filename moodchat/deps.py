"""
FastAPI dependencies.

Long-lived engine objects (store, coalescer, scorer) are built once in the
application lifespan and hung on app.state; routes reach them through the
getters below so tests can swap them with dependency_overrides.
"""
from __future__ import annotations

import uuid
from datetime import tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import Depends, Header, Request, Response

from moodchat.core.config import settings
from moodchat.services.chat import ChatService
from moodchat.services.coalescer import SessionUpdateCoalescer
from moodchat.services.mood_scorer import MoodScorer
from moodchat.services.session_store import SessionStore

DEVICE_ID_HEADER = "X-Device-Id"


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_coalescer(request: Request) -> SessionUpdateCoalescer:
    return request.app.state.coalescer


def get_scorer(request: Request) -> MoodScorer:
    return request.app.state.scorer


def get_chat_service(
    store: SessionStore = Depends(get_session_store),
    coalescer: SessionUpdateCoalescer = Depends(get_coalescer),
    scorer: MoodScorer = Depends(get_scorer),
) -> ChatService:
    return ChatService(store=store, coalescer=coalescer, scorer=scorer)


@lru_cache
def get_calendar_tz() -> Optional[tzinfo]:
    """Zone for day bucketing; None means the server's local zone."""
    name = settings.CALENDAR_TIMEZONE.strip()
    return ZoneInfo(name) if name else None


def get_device_id(
    response: Response,
    x_device_id: Optional[str] = Header(default=None, description="Opaque device identifier."),
) -> str:
    """Pass the caller's device id through, issuing a new one if absent."""
    device_id = (x_device_id or "").strip()
    if not device_id:
        device_id = str(uuid.uuid4())
    response.headers[DEVICE_ID_HEADER] = device_id
    return device_id
