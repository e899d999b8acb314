"""
Calendar schemas.

GET /calendar/month → MonthGridResponse
GET /calendar/day   → DayBucketResponse
"""
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

from moodchat.schemas.session import SessionOut

MoodTrendOut = Literal["up", "down", "flat", "none"]
MoodBandOut = Literal["none", "zero", "very_low", "low", "medium", "high", "very_high"]


class DayBucketResponse(BaseModel):
    """Mood rollup of one calendar day."""
    model_config = ConfigDict(from_attributes=True)

    day: str
    is_current_month: bool
    session_count: int
    average_mood_score: int = Field(
        description="Rounded mean of scored sessions; 0 when there are none."
    )
    mood_trend: MoodTrendOut = Field(
        description="Latest vs. earliest scored session of the day."
    )
    band: MoodBandOut
    sessions: list[SessionOut]


class MonthGridResponse(BaseModel):
    """All visible cells of a month view, Sunday-first weeks, oldest first."""
    anchor: str
    month: str = Field(examples=["2026-02"])
    days: list[DayBucketResponse]
