"""
Chat session schemas.

POST /chat/sessions                      → StartSessionResponse
GET  /chat/sessions                      → SessionListResponse
POST /chat/sessions/{id}/messages        → MessageResponse
POST /chat/sessions/{id}/flush           → FlushResponse
POST /mood-entries                       → MoodEntryResponse
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    device_id: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    summary: Optional[str] = None
    mood_score: Optional[int] = None
    mood_label: Optional[str] = None


class StartSessionResponse(BaseModel):
    session: SessionOut
    greeting: str


class SessionListResponse(BaseModel):
    total: int
    items: list[SessionOut]


class HistoryMessageIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    is_bot: bool = Field(default=False, alias="isBot")
    timestamp: Optional[datetime] = None


class MessageRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    history: list[HistoryMessageIn] = Field(
        default_factory=list,
        description="Conversation so far, oldest first, including the new message.",
    )

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class MoodOut(BaseModel):
    score: int = Field(ge=0, le=100)
    label: str


class MessageResponse(BaseModel):
    session_id: str
    bot_response: str
    summary: str
    mood: MoodOut
    update_scheduled: bool = Field(
        description="False when the mood update could not be queued; the reply is still valid."
    )


class FlushResponse(BaseModel):
    session_id: str
    flushed: bool
    pending: bool = Field(description="True if a draft is still waiting to be written.")


class MoodEntryRequest(BaseModel):
    session_id: str = Field(min_length=1)
    mood_score: int = Field(ge=0, le=100)
    note: Optional[str] = Field(default=None, max_length=2000)


class MoodEntryResponse(BaseModel):
    id: int
    device_id: str
    session_id: str
    mood_score: int
    note: Optional[str] = None
    created_at: Optional[str] = None
