"""Tests for the session record value object and its document form."""

import datetime

import pytest
from pydantic import ValidationError

from app.fasting.state_machine import end, new_session, pause, record_engagement, record_motivation, resume, start
from app.schemas.fasting_session import (
    STANDARD_DURATIONS,
    FastingEndReason,
    FastingMotivation,
    FastingSessionRecord,
    FastingState,
    FastingType,
    standard_duration,
)

T0 = datetime.datetime(2026, 3, 1, 8, 0, tzinfo=datetime.timezone.utc)
H = datetime.timedelta(hours=1)


class TestEnums:
    def test_state_values(self):
        assert [s.value for s in FastingState] == ["notStarted", "active", "paused", "completed", "broken"]

    def test_terminal_states(self):
        assert {s for s in FastingState if s.is_terminal} == {FastingState.COMPLETED, FastingState.BROKEN}

    def test_end_reason_values(self):
        assert FastingEndReason.USER_BREAK.value == "userBreak"
        assert FastingEndReason.EMERGENCY_BREAK.value == "emergencyBreak"

    def test_every_protocol_has_a_duration(self):
        assert set(STANDARD_DURATIONS) == set(FastingType)
        assert standard_duration(FastingType.INTERMITTENT_18_6) == 18 * H
        assert standard_duration(FastingType.EXTENDED_48) == 48 * H


class TestImmutability:
    def test_fields_cannot_be_assigned(self):
        record = new_session("s1", "u1", FastingType.OMAD, created_at=T0)
        with pytest.raises(ValidationError):
            record.state = FastingState.ACTIVE

    def test_completion_percentage_is_bounded(self):
        with pytest.raises(ValidationError):
            FastingSessionRecord(id="s1", user_id="u1", type=FastingType.OMAD, planned_duration=H,
                                 completion_percentage=101.0, created_at=T0, updated_at=T0)


class TestDocumentRoundTrip:
    def test_unstarted_record(self):
        record = new_session("s1", "u1", FastingType.INTERMITTENT_16_8, created_at=T0)
        document = record.to_document()

        assert document["state"] == "notStarted"
        assert document["paused_times"] == []
        assert document["resumed_times"] == []
        assert document["actual_end_time"] is None
        assert document["actual_duration"] is None
        assert document["planned_duration"] == 57600.0

        restored = FastingSessionRecord.from_document(document)
        assert restored.to_document() == document
        assert restored.paused_times == ()
        assert restored.actual_end_time is None
        assert restored.planned_duration == 16 * H

    def test_finished_record_with_everything(self):
        record = start(new_session("s2", "u1", FastingType.EXTENDED_24, created_at=T0, personal_goal="reset",
                                   motivational_tags=["discipline"], metadata={"source": "watch"}), T0)
        record = pause(record, T0 + 2 * H)
        record = resume(record, T0 + 2.5 * H)
        record = record_engagement(record, T0 + 3 * H, app_opened=True, feature_used="timer")
        motivation = FastingMotivation(id="m1", type="tip", content="Drink water.", shown_at=T0 + 4 * H)
        record = record_motivation(record, motivation, T0 + 4 * H)
        record = end(record, FastingEndReason.USER_BREAK, T0 + 12 * H, notes="dinner invite")

        document = record.to_document()
        assert document["total_paused_duration"] == 1800.0
        assert document["actual_duration"] == 11.5 * 3600.0

        restored = FastingSessionRecord.from_document(document)
        assert restored.to_document() == document
        assert restored.paused_times == record.paused_times
        assert restored.resumed_times == record.resumed_times
        assert restored.actual_end_time == record.actual_end_time
        assert restored.actual_duration == record.actual_duration
        assert restored.motivation_shown[0].content == "Drink water."
        assert restored.engagement.feature_usage == {"timer": 1}
        assert restored.metadata == {"source": "watch"}
        assert restored.streak_recorded

    def test_instants_keep_their_offset(self):
        record = start(new_session("s3", "u1", FastingType.OMAD, created_at=T0), T0)
        restored = FastingSessionRecord.from_document(record.to_document())
        assert restored.actual_start_time.utcoffset() == datetime.timedelta(0)
        assert restored.actual_start_time == T0
