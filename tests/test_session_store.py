"""
Tests for the SQLAlchemy-backed session store.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from moodchat.core.errors import InvalidMoodScoreError, SessionNotFoundError, SessionStoreError
from moodchat.models.device import Device
from moodchat.services.session_store import FinalUpdate, SessionStore

UTC = timezone.utc


class TestCreate:
    def test_new_session_is_neutral(self, store, device_id):
        s = store.create(device_id)
        assert s.device_id == device_id
        assert s.mood_score == 50
        assert s.summary == "Conversation just started."
        assert s.start_time is not None
        assert s.end_time == s.start_time
        assert s.start_time.tzinfo is not None

    def test_explicit_start_time(self, store, device_id):
        start = datetime(2026, 2, 14, 9, 0, tzinfo=UTC)
        s = store.create(device_id, started_at=start)
        assert s.start_time == start

    def test_configured_defaults(self, session_factory, device_id):
        custom = SessionStore(session_factory, neutral_score=60, initial_summary="hi")
        s = custom.create(device_id)
        assert (s.mood_score, s.summary) == (60, "hi")


class TestUpdateFinal:
    def test_overwrites_summary_and_mood(self, store, device_id):
        start = datetime(2026, 2, 14, 9, 0, tzinfo=UTC)
        s = store.create(device_id, started_at=start)
        end = start + timedelta(minutes=40)

        updated = store.update_final(s.id, FinalUpdate(end, "User is calmer.", 72, "content"))
        assert updated.start_time == start
        assert updated.end_time == end
        assert (updated.summary, updated.mood_score, updated.mood_label) == (
            "User is calmer.", 72, "content",
        )
        assert store.get(s.id) == updated

    def test_end_time_never_before_start(self, store, device_id):
        start = datetime(2026, 2, 14, 9, 0, tzinfo=UTC)
        s = store.create(device_id, started_at=start)
        updated = store.update_final(s.id, FinalUpdate(start - timedelta(hours=1), "x", 10))
        assert updated.end_time == start

    def test_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            store.update_final("missing", FinalUpdate(datetime.now(UTC), "x", 10))


class TestQueries:
    def test_list_by_device_is_scoped_and_ordered(self, store, device_id):
        base = datetime(2026, 2, 14, 9, 0, tzinfo=UTC)
        late = store.create(device_id, started_at=base + timedelta(hours=2))
        early = store.create(device_id, started_at=base)
        store.create(f"{device_id}-other", started_at=base)

        assert [s.id for s in store.list_by_device(device_id)] == [early.id, late.id]

    def test_list_for_unknown_device_is_empty(self, store):
        assert store.list_by_device("nobody-ever") == []

    def test_get_unknown(self, store):
        with pytest.raises(SessionNotFoundError):
            store.get("missing")

    def test_delete(self, store, device_id):
        s = store.create(device_id)
        store.save_mood_entry(device_id, s.id, 40)
        store.delete(s.id)
        with pytest.raises(SessionNotFoundError):
            store.get(s.id)
        with pytest.raises(SessionNotFoundError):
            store.delete(s.id)


class TestDevicesAndMoodEntries:
    def test_register_device_is_upsert(self, store, device_id, db):
        store.register_device(device_id)
        store.register_device(device_id)
        rows = db.query(Device).filter(Device.device_id == device_id).all()
        assert len(rows) == 1
        assert rows[0].last_seen is not None

    def test_save_mood_entry(self, store, device_id):
        s = store.create(device_id)
        entry = store.save_mood_entry(device_id, s.id, 35, note="after work")
        assert entry.id > 0
        assert (entry.session_id, entry.mood_score, entry.note) == (s.id, 35, "after work")

    def test_mood_entry_for_unknown_session(self, store, device_id):
        with pytest.raises(SessionNotFoundError):
            store.save_mood_entry(device_id, "missing", 35)

    @pytest.mark.parametrize("score", [-5, 101, True])
    def test_mood_entry_rejects_bad_score(self, store, device_id, score):
        with pytest.raises(InvalidMoodScoreError):
            store.save_mood_entry(device_id, "irrelevant", score)


class TestFailures:
    def test_database_errors_are_wrapped(self):
        # Fresh in-memory DB with no tables → every query fails.
        broken = sessionmaker(bind=create_engine("sqlite://"))
        store = SessionStore(session_factory=broken)
        with pytest.raises(SessionStoreError) as exc_info:
            store.list_by_device("dev")
        assert exc_info.value.details["operation"] == "list_by_device"
        assert exc_info.value.code == "SESSION_STORE_ERROR"
