"""Tests for the fasting session state machine."""

import datetime

import pytest

from app.fasting.config import FastingConfig
from app.fasting.errors import InvalidDuration, InvalidTransition
from app.fasting.state_machine import (
    end,
    new_session,
    pause,
    record_engagement,
    record_motivation,
    resume,
    start,
)
from app.schemas.fasting_session import (
    FastingEndReason,
    FastingMotivation,
    FastingSessionRecord,
    FastingState,
    FastingType,
)

T0 = datetime.datetime(2026, 3, 1, 8, 0, tzinfo=datetime.timezone.utc)
H = datetime.timedelta(hours=1)


# ======================================================================
# Helpers
# ======================================================================


def _fresh(fasting_type: FastingType = FastingType.INTERMITTENT_16_8, **kwargs) -> FastingSessionRecord:
    return new_session("s1", "u1", fasting_type, created_at=T0, **kwargs)


def _active(hours: float = 10) -> FastingSessionRecord:
    return start(_fresh(FastingType.CUSTOM, planned_duration=hours * H), T0)


def _completed_history(count: int) -> list[FastingSessionRecord]:
    history = []
    for i in range(count):
        day = T0 - datetime.timedelta(days=count - i)
        record = start(new_session(f"h{i}", "u1", FastingType.CUSTOM, created_at=day, planned_duration=H), day)
        history.append(end(record, FastingEndReason.COMPLETED, day + H, history=history))
    return history


# ======================================================================
# Creation
# ======================================================================


class TestNewSession:
    def test_defaults_to_protocol_duration(self):
        record = _fresh(FastingType.OMAD)
        assert record.state == FastingState.NOT_STARTED
        assert record.planned_duration == 23 * H
        assert record.actual_start_time is None
        assert record.paused_times == ()

    def test_explicit_duration_wins(self):
        assert _fresh(planned_duration=12 * H).planned_duration == 12 * H

    @pytest.mark.parametrize("duration", [datetime.timedelta(0), -H, datetime.timedelta(days=8)])
    def test_rejects_invalid_duration(self, duration):
        with pytest.raises(InvalidDuration):
            _fresh(planned_duration=duration)

    def test_custom_max_duration(self):
        cfg = FastingConfig(max_planned_duration=24 * H)
        with pytest.raises(InvalidDuration):
            _fresh(FastingType.EXTENDED_36, config=cfg)

    def test_goal_and_tags_are_kept(self):
        record = _fresh(personal_goal="feel lighter", motivational_tags=["health", "focus"], target_weight=70.5)
        assert record.personal_goal == "feel lighter"
        assert record.motivational_tags == ("health", "focus")
        assert record.target_weight == 70.5


# ======================================================================
# start
# ======================================================================


class TestStart:
    def test_sets_timing_fields(self):
        original = _fresh()
        record = start(original, T0)
        assert record.state == FastingState.ACTIVE
        assert record.actual_start_time == T0
        assert record.planned_start_time == T0
        assert record.planned_end_time == T0 + 16 * H
        assert record.updated_at == T0

    def test_previous_record_is_untouched(self):
        original = _fresh()
        start(original, T0)
        assert original.state == FastingState.NOT_STARTED
        assert original.actual_start_time is None

    def test_keeps_planned_start_time(self):
        planned = T0 - 30 * datetime.timedelta(minutes=1)
        record = start(_fresh(planned_start_time=planned), T0)
        assert record.planned_start_time == planned
        assert record.actual_start_time == T0

    def test_duration_override(self):
        record = start(_fresh(), T0, planned_duration=18 * H)
        assert record.planned_duration == 18 * H
        assert record.planned_end_time == T0 + 18 * H

    def test_invalid_override_is_rejected(self):
        with pytest.raises(InvalidDuration):
            start(_fresh(), T0, planned_duration=datetime.timedelta(0))

    def test_cannot_start_twice(self):
        record = start(_fresh(), T0)
        with pytest.raises(InvalidTransition):
            start(record, T0 + H)

    def test_start_time_already_recorded(self):
        record = _fresh().model_copy(update={"actual_start_time": T0})
        with pytest.raises(InvalidTransition, match="start time already recorded"):
            start(record, T0 + H)


# ======================================================================
# pause / resume
# ======================================================================


class TestPauseResume:
    def test_pause_appends_to_ledger(self):
        record = pause(_active(), T0 + 2 * H)
        assert record.state == FastingState.PAUSED
        assert record.paused_times == (T0 + 2 * H,)
        assert record.resumed_times == ()
        assert record.has_open_pause

    def test_no_double_pause(self):
        record = pause(_active(), T0 + 2 * H)
        with pytest.raises(InvalidTransition, match="paused"):
            pause(record, T0 + 3 * H)

    def test_cannot_pause_before_start(self):
        with pytest.raises(InvalidTransition):
            pause(_fresh(), T0)

    def test_resume_recomputes_total(self):
        record = resume(pause(_active(), T0 + 2 * H), T0 + 3 * H)
        assert record.state == FastingState.ACTIVE
        assert record.resumed_times == (T0 + 3 * H,)
        assert record.total_paused_duration == H
        assert not record.has_open_pause

    def test_cannot_resume_active(self):
        with pytest.raises(InvalidTransition):
            resume(_active(), T0 + H)

    def test_resume_without_open_interval(self):
        broken_ledger = _active().model_copy(update={"state": FastingState.PAUSED})
        with pytest.raises(InvalidTransition, match="no open interval"):
            resume(broken_ledger, T0 + H)

    def test_ledgers_stay_balanced(self):
        record = _active()
        for offset in (1, 3, 5):
            record = pause(record, T0 + offset * H)
            assert len(record.paused_times) == len(record.resumed_times) + 1
            record = resume(record, T0 + (offset + 1) * H)
            assert len(record.paused_times) == len(record.resumed_times)
        assert record.total_paused_duration == 3 * H


# ======================================================================
# end
# ======================================================================


class TestEnd:
    def test_happy_path_16_8(self):
        record = start(_fresh(), T0)
        done = end(record, FastingEndReason.COMPLETED, T0 + 16 * H)
        assert done.state == FastingState.COMPLETED
        assert done.actual_end_time == T0 + 16 * H
        assert done.actual_duration == 16 * H
        assert done.completion_percentage == pytest.approx(100.0)
        assert done.end_reason == FastingEndReason.COMPLETED
        assert done.current_streak == 1
        assert done.longest_streak == 1
        assert done.is_personal_best
        assert done.streak_recorded

    def test_completion_within_tolerance(self):
        record = start(_fresh(), T0)
        almost = T0 + 16 * H - datetime.timedelta(seconds=30)
        assert end(record, FastingEndReason.COMPLETED, almost).state == FastingState.COMPLETED

    def test_premature_completion_is_rejected(self):
        record = start(_fresh(), T0)
        with pytest.raises(InvalidTransition, match="complete"):
            end(record, FastingEndReason.COMPLETED, T0 + 8 * H)
        assert record.state == FastingState.ACTIVE

    def test_early_break(self):
        record = start(_fresh(FastingType.EXTENDED_24), T0)
        broken = end(record, FastingEndReason.USER_BREAK, T0 + 6 * H, notes="headache")
        assert broken.state == FastingState.BROKEN
        assert broken.completion_percentage == pytest.approx(25.0)
        assert broken.actual_duration == 6 * H
        assert broken.end_notes == "headache"
        assert broken.current_streak == 0
        assert not broken.is_personal_best

    @pytest.mark.parametrize("reason", [FastingEndReason.EMERGENCY_BREAK, FastingEndReason.APP_ERROR])
    def test_other_break_reasons_are_broken(self, reason):
        assert end(_active(), reason, T0 + H).state == FastingState.BROKEN

    def test_end_while_paused_closes_the_pause(self):
        record = pause(_active(10), T0 + 2 * H)
        broken = end(record, FastingEndReason.USER_BREAK, T0 + 4 * H)
        assert broken.resumed_times == (T0 + 4 * H,)
        assert broken.total_paused_duration == 2 * H
        assert broken.actual_duration == 2 * H
        assert broken.completion_percentage == pytest.approx(20.0)
        assert not broken.has_open_pause

    def test_cannot_end_before_start(self):
        with pytest.raises(InvalidTransition):
            end(_fresh(), FastingEndReason.USER_BREAK, T0)

    def test_end_clamps_rolled_back_clock(self):
        record = pause(_active(10), T0 + 5 * H)
        broken = end(record, FastingEndReason.USER_BREAK, T0 + 4 * H)
        assert broken.actual_end_time == T0 + 5 * H
        assert broken.actual_duration == 5 * H

    def test_streak_uses_history(self):
        history = _completed_history(2)
        done = end(_active(1), FastingEndReason.COMPLETED, T0 + H, history=history)
        assert done.current_streak == 3
        assert done.longest_streak == 3


class TestTerminalStates:
    @pytest.fixture
    def terminal_records(self):
        active = _active(1)
        return [
            end(active, FastingEndReason.COMPLETED, T0 + H),
            end(active, FastingEndReason.USER_BREAK, T0 + 0.5 * H),
        ]

    def test_every_command_is_rejected(self, terminal_records):
        for record in terminal_records:
            with pytest.raises(InvalidTransition):
                start(record, T0 + 2 * H)
            with pytest.raises(InvalidTransition):
                pause(record, T0 + 2 * H)
            with pytest.raises(InvalidTransition):
                resume(record, T0 + 2 * H)
            with pytest.raises(InvalidTransition):
                end(record, FastingEndReason.USER_BREAK, T0 + 2 * H)
            with pytest.raises(InvalidTransition):
                record_engagement(record, T0 + 2 * H, app_opened=True)

    def test_error_names_the_state(self, terminal_records):
        with pytest.raises(InvalidTransition, match="'completed'") as exc_info:
            pause(terminal_records[0], T0 + 2 * H)
        assert exc_info.value.command == "pause"
        assert exc_info.value.state == FastingState.COMPLETED


# ======================================================================
# Engagement
# ======================================================================


class TestEngagement:
    def test_counters_accumulate(self):
        record = _active()
        record = record_engagement(record, T0 + H, app_opened=True, timer_checked=True)
        record = record_engagement(record, T0 + 2 * H, timer_checked=True, snap_taken=True,
                                   challenge_met="no-snacks", feature_used="timer")
        record = record_engagement(record, T0 + 3 * H, feature_used="timer")
        engagement = record.engagement
        assert engagement.app_opens == 1
        assert engagement.timer_checks == 2
        assert engagement.snaps_taken == 1
        assert engagement.challenges_met == ("no-snacks",)
        assert engagement.feature_usage == {"timer": 2}
        assert record.updated_at == T0 + 3 * H

    def test_engagement_does_not_change_state(self):
        record = pause(_active(), T0 + H)
        assert record_engagement(record, T0 + 2 * H, app_opened=True).state == FastingState.PAUSED

    def test_engagement_before_start(self):
        record = record_engagement(_fresh(), T0, app_opened=True)
        assert record.engagement.app_opens == 1
        assert record.state == FastingState.NOT_STARTED

    def test_motivation_is_recorded(self):
        motivation = FastingMotivation(id="m1", type="quote", content="One hour at a time.", shown_at=T0 + H)
        record = record_motivation(_active(), motivation, T0 + H)
        assert record.motivation_shown == (motivation,)
        assert record.engagement.motivation_views == 1


# ======================================================================
# Successor records
# ======================================================================


class TestSuccessorRecords:
    def test_metadata_is_not_shared(self):
        record = _fresh(metadata={"source": "watch"})
        started = start(record, T0)
        assert started.metadata == record.metadata
        assert started.metadata is not record.metadata

        started.metadata["source"] = "phone"
        assert record.metadata == {"source": "watch"}

    def test_every_transition_copies_containers(self):
        record = _active()
        paused = pause(record, T0 + H)
        ended = end(paused, FastingEndReason.USER_BREAK, T0 + 2 * H)
        for earlier, later in ((record, paused), (paused, ended)):
            assert later.metadata is not earlier.metadata
            assert later.engagement.feature_usage is not earlier.engagement.feature_usage

    def test_end_uses_best_prior_duration(self):
        done = end(_active(1), FastingEndReason.COMPLETED, T0 + H, best_prior_duration=30 * H)
        assert not done.is_personal_best
