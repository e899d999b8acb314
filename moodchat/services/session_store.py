"""
Session store — durable chat session records behind a small function surface.

Public API
----------
SessionStore.create(device_id)                   -> SessionRecord
SessionStore.update_final(session_id, update)    -> SessionRecord
SessionStore.get(session_id)                     -> SessionRecord
SessionStore.list_by_device(device_id)           -> list[SessionRecord]
SessionStore.delete(session_id)                  -> None
SessionStore.register_device(device_id)          -> None
SessionStore.save_mood_entry(...)                -> MoodEntryRecord

Every operation opens its own short-lived SQLAlchemy session, because the
coalescer calls update_final() from timer threads rather than from a
request. Any database failure surfaces as SessionStoreError.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from moodchat.core.errors import (
    InvalidMoodScoreError,
    MoodChatException,
    SessionNotFoundError,
    SessionStoreError,
)
from moodchat.db.base import SessionLocal
from moodchat.models.chat_session import ChatSession
from moodchat.models.device import Device
from moodchat.models.mood_entry import MoodEntry

logger = structlog.get_logger()

DEFAULT_NEUTRAL_SCORE = 50
DEFAULT_INITIAL_SUMMARY = "Conversation just started."


# ---------------------------------------------------------------------------
# Value types (plain dataclasses, detached from the ORM)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SessionRecord:
    id: str
    device_id: str
    start_time: Optional[datetime]
    end_time: Optional[datetime] = None
    summary: Optional[str] = None
    mood_score: Optional[int] = None
    mood_label: Optional[str] = None


@dataclass(frozen=True)
class FinalUpdate:
    """Payload written by a flush. The fields travel together, never apart."""
    end_time: datetime
    summary: str
    mood_score: int
    mood_label: Optional[str] = None


@dataclass(frozen=True)
class MoodEntryRecord:
    id: int
    device_id: str
    session_id: str
    mood_score: int
    note: Optional[str]
    created_at: Optional[datetime]


def check_mood_score(value) -> int:
    """Return value unchanged if it is an int in [0, 100], else raise."""
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
        raise InvalidMoodScoreError(value)
    return value


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: ChatSession) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        device_id=row.device_id,
        start_time=_as_utc(row.start_time),
        end_time=_as_utc(row.end_time),
        summary=row.summary,
        mood_score=row.mood_score,
        mood_label=row.mood_label,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class SessionStore:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        neutral_score: int = DEFAULT_NEUTRAL_SCORE,
        initial_summary: str = DEFAULT_INITIAL_SUMMARY,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_factory = session_factory
        self._neutral_score = neutral_score
        self._initial_summary = initial_summary
        self._clock = clock

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        """Yield a DB session; commit on success, roll back and wrap on failure."""
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except MoodChatException:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("session_store_error", operation=operation, error=str(exc))
            raise SessionStoreError(operation, reason=exc.__class__.__name__) from exc
        finally:
            db.close()

    @staticmethod
    def _get_row(db: Session, session_id: str) -> ChatSession:
        row = db.get(ChatSession, session_id)
        if row is None:
            raise SessionNotFoundError(session_id)
        return row

    # --- sessions ---

    def create(self, device_id: str, started_at: Optional[datetime] = None) -> SessionRecord:
        """Open a session with a neutral mood and the placeholder summary."""
        start = _as_utc(started_at) or self._clock()
        with self._session("create") as db:
            row = ChatSession(
                device_id=device_id,
                start_time=start,
                end_time=start,
                summary=self._initial_summary,
                mood_score=self._neutral_score,
            )
            db.add(row)
            db.flush()
            record = _to_record(row)
        logger.info("session_created", session_id=record.id, device_id=device_id)
        return record

    def update_final(self, session_id: str, update: FinalUpdate) -> SessionRecord:
        """Overwrite end_time, summary and mood of a session in one statement."""
        with self._session("update_final") as db:
            row = self._get_row(db, session_id)
            start = _as_utc(row.start_time)
            end = _as_utc(update.end_time)
            row.end_time = max(start, end) if start is not None else end
            row.summary = update.summary
            row.mood_score = update.mood_score
            row.mood_label = update.mood_label
            db.flush()
            return _to_record(row)

    def get(self, session_id: str) -> SessionRecord:
        with self._session("get") as db:
            return _to_record(self._get_row(db, session_id))

    def list_by_device(self, device_id: str) -> list[SessionRecord]:
        with self._session("list_by_device") as db:
            rows = (
                db.query(ChatSession)
                .filter(ChatSession.device_id == device_id)
                .order_by(ChatSession.start_time.asc())
                .all()
            )
            return [_to_record(r) for r in rows]

    def delete(self, session_id: str) -> None:
        with self._session("delete") as db:
            row = self._get_row(db, session_id)
            db.query(MoodEntry).filter(MoodEntry.session_id == session_id).delete()
            db.delete(row)
        logger.info("session_deleted", session_id=session_id)

    # --- devices & mood log ---

    def register_device(self, device_id: str) -> None:
        """Touch last_seen for a device, creating it on first sight."""
        with self._session("register_device") as db:
            device = db.query(Device).filter(Device.device_id == device_id).first()
            if device is None:
                db.add(Device(device_id=device_id, last_seen=self._clock()))
            else:
                device.last_seen = self._clock()

    def save_mood_entry(
        self,
        device_id: str,
        session_id: str,
        mood_score: int,
        note: Optional[str] = None,
    ) -> MoodEntryRecord:
        check_mood_score(mood_score)
        with self._session("save_mood_entry") as db:
            row = self._get_row(db, session_id)
            if row.device_id != device_id:
                raise SessionNotFoundError(session_id)
            entry = MoodEntry(
                device_id=device_id,
                session_id=session_id,
                mood_score=mood_score,
                note=note,
                created_at=self._clock(),
            )
            db.add(entry)
            db.flush()
            return MoodEntryRecord(
                id=entry.id,
                device_id=entry.device_id,
                session_id=entry.session_id,
                mood_score=entry.mood_score,
                note=entry.note,
                created_at=_as_utc(entry.created_at),
            )
