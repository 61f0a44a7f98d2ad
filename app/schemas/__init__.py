"""Pydantic schemas for request/response validation."""

from app.schemas.fasting_session import (
    FastingEndReason,
    FastingEngagement,
    FastingEngagementUpdate,
    FastingMotivation,
    FastingSessionCreate,
    FastingSessionEnd,
    FastingSessionRecord,
    FastingSessionResponse,
    FastingState,
    FastingStatistics,
    FastingType,
    ProgressSnapshot,
    StreakResult,
    STANDARD_DURATIONS,
    standard_duration,
)

__all__ = [
    "FastingEndReason",
    "FastingEngagement",
    "FastingEngagementUpdate",
    "FastingMotivation",
    "FastingSessionCreate",
    "FastingSessionEnd",
    "FastingSessionRecord",
    "FastingSessionResponse",
    "FastingState",
    "FastingStatistics",
    "FastingType",
    "ProgressSnapshot",
    "StreakResult",
    "STANDARD_DURATIONS",
    "standard_duration",
]
