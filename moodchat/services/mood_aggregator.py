"""
Mood aggregation — per-day rollups for the calendar view.

Definitions
-----------
  - A session belongs to day D when its start_time, read in local time,
    falls on D (00:00:00.000 through 23:59:59.999 inclusive). Sessions
    without a start_time are skipped.
  - Average mood = mean mood_score over scored sessions, rounded half up;
    0 when nothing is scored. Callers tell "no data" from "scored 0" by
    checking whether the bucket has sessions.
  - Trend compares the earliest and the latest scored session only:
    up / down / flat, or none with fewer than 2 scored sessions.
    Intermediate points are ignored on purpose.

Every function here is pure. Same input, same output; no locking needed.

Public API
----------
sessions_on_date(sessions, day, tz)   -> list[SessionRecord]
average_mood(sessions)                -> int
trend(sessions)                       -> MoodTrend
day_summary(sessions, day, tz)        -> DayBucket
month_grid(anchor, sessions, tz)      -> list[DayBucket]
overall_stats(sessions)               -> MoodStats
mood_band(score, has_sessions)        -> MoodBand
"""
from __future__ import annotations

import calendar
import enum
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from moodchat.services.session_store import SessionRecord


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class MoodTrend(str, enum.Enum):
    up = "up"
    down = "down"
    flat = "flat"
    none = "none"


class MoodBand(str, enum.Enum):
    none = "none"            # no sessions at all
    zero = "zero"            # sessions exist, average is 0
    very_low = "very_low"    # [1, 20)
    low = "low"              # [20, 40)
    medium = "medium"        # [40, 60)
    high = "high"            # [60, 80)
    very_high = "very_high"  # >= 80


@dataclass(frozen=True)
class DayBucket:
    day: date
    sessions: tuple[SessionRecord, ...]
    average_mood_score: int
    mood_trend: MoodTrend
    is_current_month: bool = True

    @property
    def has_sessions(self) -> bool:
        return bool(self.sessions)

    @property
    def band(self) -> MoodBand:
        return mood_band(self.average_mood_score, has_sessions=self.has_sessions)


@dataclass(frozen=True)
class MoodStats:
    session_count: int
    average_mood_score: int
    mood_trend: MoodTrend


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _local_start(session: SessionRecord, tz: Optional[tzinfo]) -> Optional[datetime]:
    """start_time as naive local wall time, or None if unusable."""
    start = getattr(session, "start_time", None)
    if not isinstance(start, datetime):
        return None
    if start.tzinfo is None:
        return start
    return start.astimezone(tz).replace(tzinfo=None)


def _sort_key(session: SessionRecord) -> float:
    return session.start_time.timestamp()


def _scored(sessions: Iterable[SessionRecord]) -> list[SessionRecord]:
    return [s for s in sessions if s.mood_score is not None]


# ---------------------------------------------------------------------------
# Per-day primitives
# ---------------------------------------------------------------------------

def sessions_on_date(
    sessions: Iterable[SessionRecord],
    day: date,
    tz: Optional[tzinfo] = None,
) -> list[SessionRecord]:
    """Sessions started on `day` in local time, earliest first."""
    if isinstance(day, datetime):
        day = day.date()
    matched = []
    for session in sessions:
        local = _local_start(session, tz)
        if local is not None and local.date() == day:
            matched.append(session)
    return sorted(matched, key=_sort_key)


def average_mood(sessions: Iterable[SessionRecord]) -> int:
    scores = [s.mood_score for s in _scored(sessions)]
    if not scores:
        return 0
    mean = Decimal(sum(scores)) / Decimal(len(scores))
    return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def trend(sessions: Iterable[SessionRecord]) -> MoodTrend:
    ordered = sorted(
        (s for s in _scored(sessions) if isinstance(s.start_time, datetime)),
        key=_sort_key,
    )
    if len(ordered) < 2:
        return MoodTrend.none
    first, last = ordered[0].mood_score, ordered[-1].mood_score
    if last > first:
        return MoodTrend.up
    if last < first:
        return MoodTrend.down
    return MoodTrend.flat


def mood_band(score: int, has_sessions: bool = True) -> MoodBand:
    """Colour band for a score; thresholds at 80, 60, 40, 20."""
    if not has_sessions:
        return MoodBand.none
    if score == 0:
        return MoodBand.zero
    if score >= 80:
        return MoodBand.very_high
    if score >= 60:
        return MoodBand.high
    if score >= 40:
        return MoodBand.medium
    if score >= 20:
        return MoodBand.low
    return MoodBand.very_low


def _bucket(day: date, day_sessions: list[SessionRecord], is_current_month: bool) -> DayBucket:
    return DayBucket(
        day=day,
        sessions=tuple(day_sessions),
        average_mood_score=average_mood(day_sessions),
        mood_trend=trend(day_sessions),
        is_current_month=is_current_month,
    )


def day_summary(
    sessions: Iterable[SessionRecord],
    day: date,
    tz: Optional[tzinfo] = None,
) -> DayBucket:
    """Bucket for a single day (the day panel of the calendar)."""
    if isinstance(day, datetime):
        day = day.date()
    return _bucket(day, sessions_on_date(sessions, day, tz), is_current_month=True)


def overall_stats(sessions: Iterable[SessionRecord]) -> MoodStats:
    items = list(sessions)
    return MoodStats(
        session_count=len(items),
        average_mood_score=average_mood(items),
        mood_trend=trend(items),
    )


# ---------------------------------------------------------------------------
# Month grid
# ---------------------------------------------------------------------------

def grid_bounds(anchor: date) -> tuple[date, date]:
    """
    First and last visible day of the month containing `anchor`.
    Weeks run Sunday → Saturday.
    """
    if isinstance(anchor, datetime):
        anchor = anchor.date()
    month_start = anchor.replace(day=1)
    month_end = anchor.replace(day=calendar.monthrange(anchor.year, anchor.month)[1])
    # date.weekday(): Monday=0 … Sunday=6
    start = month_start - timedelta(days=(month_start.weekday() + 1) % 7)
    end = month_end + timedelta(days=(5 - month_end.weekday()) % 7)
    return start, end


def month_grid(
    anchor: date,
    sessions: Iterable[SessionRecord],
    tz: Optional[tzinfo] = None,
) -> list[DayBucket]:
    """One DayBucket per visible calendar cell, oldest first."""
    if isinstance(anchor, datetime):
        anchor = anchor.date()
    start, end = grid_bounds(anchor)

    by_day: dict[date, list[SessionRecord]] = defaultdict(list)
    for session in sessions:
        local = _local_start(session, tz)
        if local is not None and start <= local.date() <= end:
            by_day[local.date()].append(session)

    buckets: list[DayBucket] = []
    day = start
    while day <= end:
        day_sessions = sorted(by_day.get(day, []), key=_sort_key)
        in_month = (day.year, day.month) == (anchor.year, anchor.month)
        buckets.append(_bucket(day, day_sessions, in_month))
        day += timedelta(days=1)
    return buckets
