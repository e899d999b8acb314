"""
Session update coalescer — debounced, per-session write scheduler.

Every chat turn produces a fresh (summary, mood) pair for its session.
Instead of writing each pair to the store, the coalescer keeps only the
latest one as an in-memory draft and arms a timer. Each new request for
the same session replaces the draft and re-arms the timer, so a burst of
turns ends in exactly one store write once the session has been quiet
for `window_seconds`.

Guarantees
----------
  - At most one PendingUpdate per session_id at any instant.
  - summary, mood_score and mood_label are replaced together; a flush
    never writes a mix of two requests.
  - Rescheduling, flushing and cancelling the same session_id are
    mutually exclusive (lock striped by session_id). Different sessions
    never contend for more than a stripe.
  - A failed store write keeps the draft. It is retried by the next
    explicit flush(), by the next request_update() or by shutdown().
  - Timer callbacks carry the draft generation they were armed for; a
    callback that lost a race with a reschedule or cancel does nothing.
  - shutdown() closes the coalescer, then waits out any request already
    past the closed check, so no draft is added after the drain starts.

Data-loss boundary: drafts live only in this process. shutdown() drains
them on a graceful stop; an abrupt kill loses whatever was still pending.
"""
from __future__ import annotations

import threading
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

import structlog

from moodchat.core.errors import InvalidSessionIdError, MoodChatException, SessionNotFoundError
from moodchat.services.session_store import FinalUpdate, check_mood_score

logger = structlog.get_logger()

DEFAULT_WINDOW_SECONDS = 30 * 60
_LOCK_STRIPES = 64


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------

class Timer(Protocol):
    def start(self) -> None: ...
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


class FinalUpdateWriter(Protocol):
    def update_final(self, session_id: str, update: FinalUpdate) -> Any: ...


def thread_timer(interval: float, callback: Callable[[], None]) -> Timer:
    """Default timer factory: a daemon threading.Timer (not yet started)."""
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    return timer


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Draft type
# ---------------------------------------------------------------------------

@dataclass
class PendingUpdate:
    """Latest not-yet-persisted state of one session."""
    session_id: str
    summary: str
    mood_score: int
    mood_label: Optional[str]
    requested_at: datetime
    generation: int
    timer: Optional[Timer] = field(default=None, repr=False, compare=False)


@dataclass
class ShutdownReport:
    flushed: list[str]
    failed: list[str]


# ---------------------------------------------------------------------------
# Coalescer
# ---------------------------------------------------------------------------

class SessionUpdateCoalescer:
    def __init__(
        self,
        store: FinalUpdateWriter,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        timer_factory: TimerFactory = thread_timer,
        clock: Callable[[], datetime] = _utcnow,
        lock_stripes: int = _LOCK_STRIPES,
    ):
        if window_seconds < 0:
            raise ValueError("window_seconds must be >= 0")
        self._store = store
        self.window_seconds = window_seconds
        self._timer_factory = timer_factory
        self._clock = clock
        self._locks = [threading.Lock() for _ in range(max(1, lock_stripes))]
        self._drafts: dict[str, PendingUpdate] = {}
        self._generation = 0
        self._generation_lock = threading.Lock()
        self._closed = False

    # --- helpers ---

    def _lock_for(self, session_id: str) -> threading.Lock:
        # crc32 rather than hash(): stable across processes and restarts
        return self._locks[zlib.crc32(session_id.encode("utf-8")) % len(self._locks)]

    def _next_generation(self) -> int:
        with self._generation_lock:
            self._generation += 1
            return self._generation

    @staticmethod
    def _check_session_id(session_id: str) -> None:
        if not isinstance(session_id, str) or not session_id.strip():
            raise InvalidSessionIdError()

    def _arm(self, draft: PendingUpdate) -> None:
        session_id, generation = draft.session_id, draft.generation
        timer = self._timer_factory(
            self.window_seconds,
            lambda: self._on_timer(session_id, generation),
        )
        draft.timer = timer
        timer.start()

    # --- public API ---

    def request_update(
        self,
        session_id: str,
        summary: str,
        mood_score: int,
        mood_label: Optional[str] = None,
    ) -> None:
        """
        Record the latest summary/mood for a session and (re)arm its flush
        timer. Never touches the store.
        """
        self._check_session_id(session_id)
        check_mood_score(mood_score)
        if not isinstance(summary, str):
            raise TypeError("summary must be a string")
        with self._lock_for(session_id):
            if self._closed:
                raise RuntimeError("coalescer is shut down")
            previous = self._drafts.get(session_id)
            if previous is not None and previous.timer is not None:
                previous.timer.cancel()
            draft = PendingUpdate(
                session_id=session_id,
                summary=summary,
                mood_score=mood_score,
                mood_label=mood_label,
                requested_at=self._clock(),
                generation=self._next_generation(),
            )
            self._drafts[session_id] = draft
            self._arm(draft)

        logger.debug(
            "session_update_scheduled",
            session_id=session_id,
            mood_score=mood_score,
            rescheduled=previous is not None,
            window_seconds=self.window_seconds,
        )

    def flush(self, session_id: str) -> bool:
        """
        Write the session's draft to the store now.
        Returns True if a write succeeded, False otherwise (no draft, or the
        store failed and the draft was kept).
        """
        self._check_session_id(session_id)
        return self._flush(session_id, generation=None)

    def cancel(self, session_id: str) -> bool:
        """Drop the session's draft without writing it. Idempotent."""
        self._check_session_id(session_id)
        with self._lock_for(session_id):
            draft = self._drafts.pop(session_id, None)
            if draft is not None and draft.timer is not None:
                draft.timer.cancel()
        if draft is None:
            return False
        logger.info("session_update_cancelled", session_id=session_id)
        return True

    def shutdown(self) -> ShutdownReport:
        """Stop accepting updates and force-flush every pending draft."""
        self._closed = True
        # Wait out requests that passed the closed check before the flag
        # was set, so their drafts are in the map before it is drained.
        for lock in self._locks:
            with lock:
                pass
        report = ShutdownReport(flushed=[], failed=[])
        for session_id in list(dict(self._drafts)):
            if self._flush(session_id, generation=None):
                report.flushed.append(session_id)
            elif self.has_pending(session_id):
                report.failed.append(session_id)
        logger.info(
            "coalescer_shutdown",
            flushed=len(report.flushed),
            failed=len(report.failed),
        )
        return report

    # --- introspection ---

    def has_pending(self, session_id: str) -> bool:
        return session_id in self._drafts

    def pending(self, session_id: str) -> Optional[PendingUpdate]:
        return self._drafts.get(session_id)

    def pending_ids(self) -> list[str]:
        return sorted(dict(self._drafts))

    @property
    def closed(self) -> bool:
        return self._closed

    # --- internals ---

    def _on_timer(self, session_id: str, generation: int) -> None:
        self._flush(session_id, generation=generation)

    def _flush(self, session_id: str, generation: Optional[int]) -> bool:
        with self._lock_for(session_id):
            draft = self._drafts.get(session_id)
            if draft is None:
                logger.warning("session_flush_unknown", session_id=session_id)
                return False
            if generation is not None and draft.generation != generation:
                # Superseded timer that fired while a reschedule held the lock.
                logger.debug("session_flush_stale_timer", session_id=session_id)
                return False
            if draft.timer is not None:
                draft.timer.cancel()
                draft.timer = None

            update = FinalUpdate(
                end_time=self._clock(),
                summary=draft.summary,
                mood_score=draft.mood_score,
                mood_label=draft.mood_label,
            )
            try:
                self._store.update_final(session_id, update)
            except SessionNotFoundError:
                # Nothing left to write to; retrying cannot succeed.
                del self._drafts[session_id]
                logger.warning("session_flush_orphaned", session_id=session_id)
                return False
            except MoodChatException as exc:
                logger.error(
                    "session_flush_failed",
                    session_id=session_id,
                    error=exc.code,
                    detail=exc.message,
                )
                return False

            del self._drafts[session_id]

        logger.info(
            "session_flushed",
            session_id=session_id,
            mood_score=update.mood_score,
            forced=generation is None,
        )
        return True
