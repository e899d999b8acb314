"""
ChatSession — one continuous conversation held by a device.

start_time is written once at creation. end_time, summary, mood_score and
mood_label are overwritten by every coalesced flush.
"""
import uuid
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from moodchat.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ChatSession(Base):
    __tablename__ = "chat_sessions"
    __table_args__ = (
        CheckConstraint("mood_score >= 0 AND mood_score <= 100", name="ck_chat_sessions_mood_score"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    device_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    mood_score: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    mood_label: Mapped[str | None] = mapped_column(String(32), nullable=True)
