"""
Mood log router.

POST /mood-entries   — record a standalone mood reading for a session
"""
from fastapi import APIRouter, Depends
from starlette import status

from moodchat.deps import get_device_id, get_session_store
from moodchat.schemas.common import ErrorResponse
from moodchat.schemas.session import MoodEntryRequest, MoodEntryResponse
from moodchat.services.session_store import SessionStore

router = APIRouter(prefix="/mood-entries", tags=["mood"])


@router.post(
    "",
    response_model=MoodEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Log a mood reading",
    responses={404: {"model": ErrorResponse, "description": "Session does not exist."}},
)
def create_mood_entry(
    payload: MoodEntryRequest,
    device_id: str = Depends(get_device_id),
    store: SessionStore = Depends(get_session_store),
):
    entry = store.save_mood_entry(
        device_id=device_id,
        session_id=payload.session_id,
        mood_score=payload.mood_score,
        note=payload.note,
    )
    return MoodEntryResponse(
        id=entry.id,
        device_id=entry.device_id,
        session_id=entry.session_id,
        mood_score=entry.mood_score,
        note=entry.note,
        created_at=entry.created_at.isoformat() if entry.created_at else None,
    )
