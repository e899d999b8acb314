"""
Chat service: one conversational turn end to end.

    message → ownership check → analyze_safely() → coalescer.request_update() → reply

Sessions are scoped to the device that started them; another device sees
them as missing. Once ownership is settled the reply is returned whatever
happens to scoring or scheduling.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

import structlog

from moodchat.core.errors import MoodChatException, SessionNotFoundError, SessionStoreError
from moodchat.services.coalescer import SessionUpdateCoalescer
from moodchat.services.mood_scorer import (
    HistoryMessage,
    MoodAnalysis,
    MoodScorer,
    analyze_safely,
)
from moodchat.services.session_store import SessionRecord, SessionStore

logger = structlog.get_logger()


@dataclass
class StartedSession:
    session: SessionRecord
    greeting: str


@dataclass
class TurnResult:
    session_id: str
    analysis: MoodAnalysis
    scheduled: bool   # False if the coalescer rejected the update


def greeting_for(moment: datetime) -> str:
    if moment.hour < 12:
        return "Good morning! How are you feeling today?"
    if moment.hour < 18:
        return "Good afternoon! How are you feeling today?"
    return "Good evening! How are you feeling today?"


class ChatService:
    def __init__(
        self,
        store: SessionStore,
        coalescer: SessionUpdateCoalescer,
        scorer: MoodScorer,
        local_clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.coalescer = coalescer
        self.scorer = scorer
        self._local_clock = local_clock

    def _require_owned(self, session_id: str, device_id: str) -> SessionRecord:
        """Load the session, hiding sessions of other devices as missing."""
        session = self.store.get(session_id)
        if session.device_id != device_id:
            raise SessionNotFoundError(session_id)
        return session

    def start_session(self, device_id: str) -> StartedSession:
        self.store.register_device(device_id)
        session = self.store.create(device_id)
        return StartedSession(session=session, greeting=greeting_for(self._local_clock()))

    def handle_message(
        self,
        session_id: str,
        device_id: str,
        history: Sequence[HistoryMessage],
        text: str,
    ) -> TurnResult:
        """
        Score the turn and queue the session update.

        Raises SessionNotFoundError for a session the device does not own.
        If the store cannot be reached to check ownership, the reply is still
        produced but nothing is queued.
        """
        verified = True
        try:
            self._require_owned(session_id, device_id)
        except SessionStoreError as exc:
            verified = False
            logger.warning("session_owner_unverified", session_id=session_id, error=exc.code)

        analysis = analyze_safely(self.scorer, history, text)
        if not verified:
            return TurnResult(session_id=session_id, analysis=analysis, scheduled=False)

        scheduled = True
        try:
            self.coalescer.request_update(
                session_id,
                analysis.summary,
                analysis.mood_score,
                analysis.mood_label,
            )
        except (MoodChatException, RuntimeError) as exc:
            scheduled = False
            logger.warning(
                "session_update_rejected",
                session_id=session_id,
                error=getattr(exc, "code", exc.__class__.__name__),
            )
        return TurnResult(session_id=session_id, analysis=analysis, scheduled=scheduled)

    def end_session(self, session_id: str, device_id: str) -> bool:
        """Force the pending draft (if any) into the store now."""
        self._require_owned(session_id, device_id)
        return self.coalescer.flush(session_id)

    def abandon_session(self, session_id: str, device_id: str) -> None:
        """Discard the draft and delete the stored session."""
        self._require_owned(session_id, device_id)
        self.coalescer.cancel(session_id)
        self.store.delete(session_id)

    def list_sessions(self, device_id: str) -> list[SessionRecord]:
        return self.store.list_by_device(device_id)

    def get_session(self, session_id: str) -> SessionRecord:
        return self.store.get(session_id)

    def has_pending(self, session_id: str) -> bool:
        return self.coalescer.has_pending(session_id)
