"""Fasting session engine: time accounting, state machine and streaks."""

from app.fasting.config import DEFAULT_CONFIG, FastingConfig
from app.fasting.errors import ClockAnomaly, FastingEngineError, InvalidDuration, InvalidTransition
from app.fasting.state_machine import end, new_session, pause, record_engagement, record_motivation, resume, start
from app.fasting.status import FastingStatusView, progress_snapshot
from app.fasting.streaks import attach_streak, compute_streak
from app.fasting.time_accounting import elapsed_time, is_active_fasting, progress_fraction, remaining_time

__all__ = [
    "DEFAULT_CONFIG",
    "FastingConfig",
    "ClockAnomaly",
    "FastingEngineError",
    "InvalidDuration",
    "InvalidTransition",
    "new_session",
    "start",
    "pause",
    "resume",
    "end",
    "record_engagement",
    "record_motivation",
    "FastingStatusView",
    "progress_snapshot",
    "compute_streak",
    "attach_streak",
    "progress_fraction",
    "remaining_time",
    "elapsed_time",
    "is_active_fasting",
]
