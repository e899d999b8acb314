"""
Calendar router.

GET /calendar/month   — month grid of per-day mood rollups
GET /calendar/day     — sessions and mood rollup of one day
"""
from __future__ import annotations

from datetime import date, datetime, tzinfo
from typing import Optional

from fastapi import APIRouter, Depends, Query

from moodchat.deps import get_calendar_tz, get_device_id, get_session_store
from moodchat.routers.chat import session_to_response
from moodchat.schemas.calendar import DayBucketResponse, MonthGridResponse
from moodchat.services.mood_aggregator import DayBucket, day_summary, month_grid
from moodchat.services.session_store import SessionStore

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _today(tz: Optional[tzinfo]) -> date:
    return datetime.now(tz=tz).date()


def _bucket_to_response(b: DayBucket) -> DayBucketResponse:
    return DayBucketResponse(
        day=str(b.day),
        is_current_month=b.is_current_month,
        session_count=len(b.sessions),
        average_mood_score=b.average_mood_score,
        mood_trend=b.mood_trend.value,
        band=b.band.value,
        sessions=[session_to_response(s) for s in b.sessions],
    )


@router.get(
    "/month",
    response_model=MonthGridResponse,
    summary="Month grid with per-day mood",
)
def calendar_month(
    anchor: Optional[date] = Query(
        default=None,
        description="Any day of the month to show (YYYY-MM-DD). Defaults to today.",
        examples=["2026-02-14"],
    ),
    device_id: str = Depends(get_device_id),
    store: SessionStore = Depends(get_session_store),
    tz: Optional[tzinfo] = Depends(get_calendar_tz),
):
    """
    Return every visible cell from the Sunday on or before the 1st through
    the Saturday on or after the last day of the month. Overflow days carry
    `is_current_month=false`.
    """
    target = anchor or _today(tz)
    sessions = store.list_by_device(device_id)
    buckets = month_grid(target, sessions, tz)
    return MonthGridResponse(
        anchor=str(target),
        month=f"{target.year:04d}-{target.month:02d}",
        days=[_bucket_to_response(b) for b in buckets],
    )


@router.get(
    "/day",
    response_model=DayBucketResponse,
    summary="Sessions and mood of a single day",
)
def calendar_day(
    day: Optional[date] = Query(
        default=None,
        description="Day to show (YYYY-MM-DD). Defaults to today.",
        examples=["2026-02-14"],
    ),
    device_id: str = Depends(get_device_id),
    store: SessionStore = Depends(get_session_store),
    tz: Optional[tzinfo] = Depends(get_calendar_tz),
):
    target = day or _today(tz)
    sessions = store.list_by_device(device_id)
    return _bucket_to_response(day_summary(sessions, target, tz))
