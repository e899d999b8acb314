"""
Chat router.

POST   /chat/sessions                   — start a session for the device
GET    /chat/sessions                   — list the device's sessions
POST   /chat/sessions/{id}/messages     — one conversational turn
POST   /chat/sessions/{id}/flush        — write the pending draft now
DELETE /chat/sessions/{id}              — abandon a session
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from starlette import status

from moodchat.deps import get_chat_service, get_device_id
from moodchat.schemas.common import ErrorResponse
from moodchat.schemas.session import (
    FlushResponse,
    MessageRequest,
    MessageResponse,
    MoodOut,
    SessionListResponse,
    SessionOut,
    StartSessionResponse,
)
from moodchat.services.chat import ChatService
from moodchat.services.mood_scorer import HistoryMessage
from moodchat.services.session_store import SessionRecord

router = APIRouter(prefix="/chat", tags=["chat"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def session_to_response(s: SessionRecord) -> SessionOut:
    return SessionOut(
        id=s.id,
        device_id=s.device_id,
        start_time=s.start_time.isoformat() if s.start_time else None,
        end_time=s.end_time.isoformat() if s.end_time else None,
        summary=s.summary,
        mood_score=s.mood_score,
        mood_label=s.mood_label,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post(
    "/sessions",
    response_model=StartSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a chat session",
    responses={
        201: {"description": "Session created with a neutral mood and a greeting."},
        503: {"model": ErrorResponse, "description": "Session store unavailable."},
    },
)
def start_session(
    device_id: str = Depends(get_device_id),
    chat: ChatService = Depends(get_chat_service),
):
    """Register the device (touch last_seen) and open a new session for it."""
    started = chat.start_session(device_id)
    return StartSessionResponse(
        session=session_to_response(started.session),
        greeting=started.greeting,
    )


@router.get(
    "/sessions",
    response_model=SessionListResponse,
    summary="List the device's sessions (oldest first)",
)
def list_sessions(
    device_id: str = Depends(get_device_id),
    chat: ChatService = Depends(get_chat_service),
):
    items = chat.list_sessions(device_id)
    return SessionListResponse(
        total=len(items),
        items=[session_to_response(s) for s in items],
    )


@router.post(
    "/sessions/{session_id}/messages",
    response_model=MessageResponse,
    summary="Send a message and get the bot reply",
    responses={
        200: {"description": "Bot reply; the mood update is queued, not yet stored."},
        404: {"model": ErrorResponse, "description": "Session does not exist for this device."},
    },
)
def post_message(
    session_id: str,
    payload: MessageRequest,
    device_id: str = Depends(get_device_id),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Score the conversation and queue the session's summary/mood update.

    The update is coalesced: the store is written once the session has been
    quiet for the configured window, with the values of the latest turn.
    For a session the device owns, a reply is always returned, even when
    scoring or queueing degrades. Other sessions answer 404.
    """
    history = [
        HistoryMessage(text=m.text, is_bot=m.is_bot, timestamp=m.timestamp)
        for m in payload.history
    ]
    turn = chat.handle_message(session_id, device_id, history, payload.message)
    return MessageResponse(
        session_id=session_id,
        bot_response=turn.analysis.response,
        summary=turn.analysis.summary,
        mood=MoodOut(score=turn.analysis.mood_score, label=turn.analysis.mood_label),
        update_scheduled=turn.scheduled,
    )


@router.post(
    "/sessions/{session_id}/flush",
    response_model=FlushResponse,
    summary="Write the pending draft immediately",
    responses={404: {"model": ErrorResponse, "description": "Session does not exist for this device."}},
)
def flush_session(
    session_id: str,
    device_id: str = Depends(get_device_id),
    chat: ChatService = Depends(get_chat_service),
):
    """Force-flush the session. `flushed=false, pending=true` means the store write failed."""
    flushed = chat.end_session(session_id, device_id)
    return FlushResponse(
        session_id=session_id,
        flushed=flushed,
        pending=chat.has_pending(session_id),
    )


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Abandon a session",
    responses={404: {"model": ErrorResponse, "description": "Session does not exist."}},
)
def delete_session(
    session_id: str,
    device_id: str = Depends(get_device_id),
    chat: ChatService = Depends(get_chat_service),
):
    """Drop any pending draft without writing it, then delete the session."""
    chat.abandon_session(session_id, device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
