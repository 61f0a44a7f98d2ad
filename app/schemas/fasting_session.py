"""
Fasting session schemas.

The :class:`FastingSessionRecord` is the central value object of the
fasting engine.  It is **immutable**: every transition produces a new
record via a deep ``model_copy`` and never shares or touches the previous
one's containers.

Persisted layout
----------------
``to_document()`` / ``from_document()`` are the stable storage contract.
Instants serialise as ISO-8601 strings with offset, durations as float
seconds.  Empty pause/resume ledgers and a null ``actual_end_time`` survive
the round-trip unchanged.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

# Durations travel as float seconds.
Seconds = Annotated[datetime.timedelta, PlainSerializer(lambda v: v.total_seconds(), return_type=float, when_used="json")]


class FastingState(str, Enum):
    NOT_STARTED = "notStarted"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    BROKEN = "broken"

    @property
    def is_terminal(self) -> bool:
        return self in (FastingState.COMPLETED, FastingState.BROKEN)


class FastingType(str, Enum):
    """Fasting protocols.  Standard durations live in :data:`STANDARD_DURATIONS`."""

    INTERMITTENT_16_8 = "intermittent16_8"
    INTERMITTENT_18_6 = "intermittent18_6"
    INTERMITTENT_20_4 = "intermittent20_4"
    OMAD = "omad"
    ALTERNATE = "alternate"
    EXTENDED_24 = "extended24"
    EXTENDED_36 = "extended36"
    EXTENDED_48 = "extended48"
    CUSTOM = "custom"


class FastingEndReason(str, Enum):
    COMPLETED = "completed"
    USER_BREAK = "userBreak"
    EMERGENCY_BREAK = "emergencyBreak"
    APP_ERROR = "appError"


# Protocol → planned duration.  ``custom`` falls back to 16h when the
# caller does not supply its own duration.
STANDARD_DURATIONS: dict[FastingType, datetime.timedelta] = {
    FastingType.INTERMITTENT_16_8: datetime.timedelta(hours=16),
    FastingType.INTERMITTENT_18_6: datetime.timedelta(hours=18),
    FastingType.INTERMITTENT_20_4: datetime.timedelta(hours=20),
    FastingType.OMAD: datetime.timedelta(hours=23),
    FastingType.ALTERNATE: datetime.timedelta(hours=24),
    FastingType.EXTENDED_24: datetime.timedelta(hours=24),
    FastingType.EXTENDED_36: datetime.timedelta(hours=36),
    FastingType.EXTENDED_48: datetime.timedelta(hours=48),
    FastingType.CUSTOM: datetime.timedelta(hours=16),
}


def standard_duration(fasting_type: FastingType) -> datetime.timedelta:
    """Return the standard planned duration for *fasting_type*."""
    return STANDARD_DURATIONS[fasting_type]


# ======================================================================
# Value objects
# ======================================================================


class FastingMotivation(BaseModel):
    """A motivational content item shown during a session."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str = Field(..., description="'quote', 'tip', 'milestone', 'encouragement', ...")
    content: str
    shown_at: datetime.datetime
    was_helpful: bool = False


class FastingEngagement(BaseModel):
    """Engagement counters.  Informational only, never gate a transition."""

    model_config = ConfigDict(frozen=True)

    snaps_taken: int = Field(0, ge=0)
    motivation_views: int = Field(0, ge=0)
    app_opens: int = Field(0, ge=0)
    timer_checks: int = Field(0, ge=0)
    challenges_met: tuple[str, ...] = ()
    feature_usage: dict[str, int] = Field(default_factory=dict)


class FastingSessionRecord(BaseModel):
    """One fasting attempt and its full history."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    type: FastingType
    state: FastingState = FastingState.NOT_STARTED

    # Timing
    planned_start_time: Optional[datetime.datetime] = None
    actual_start_time: Optional[datetime.datetime] = None
    planned_end_time: Optional[datetime.datetime] = None
    actual_end_time: Optional[datetime.datetime] = None
    planned_duration: Seconds
    actual_duration: Optional[Seconds] = None

    # Pause ledger
    paused_times: tuple[datetime.datetime, ...] = ()
    resumed_times: tuple[datetime.datetime, ...] = ()
    total_paused_duration: Seconds = datetime.timedelta(0)

    # Goals
    personal_goal: Optional[str] = Field(None, max_length=500)
    target_weight: Optional[float] = None
    motivational_tags: tuple[str, ...] = ()

    # Outcome
    end_reason: Optional[FastingEndReason] = None
    end_notes: Optional[str] = Field(None, max_length=1000)
    completion_percentage: float = Field(0.0, ge=0.0, le=100.0)

    # Denormalised streak fields (written once, at the terminal transition)
    current_streak: int = Field(0, ge=0)
    longest_streak: int = Field(0, ge=0)
    is_personal_best: bool = False
    streak_recorded: bool = False

    # Engagement / metadata
    engagement: FastingEngagement = Field(default_factory=FastingEngagement)
    motivation_shown: tuple[FastingMotivation, ...] = ()
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Audit
    created_at: datetime.datetime
    updated_at: datetime.datetime

    # ------------------------------------------------------------------
    # Convenience predicates
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_successful(self) -> bool:
        """``True`` for sessions that count towards a streak."""
        return self.end_reason == FastingEndReason.COMPLETED

    @property
    def has_open_pause(self) -> bool:
        return len(self.paused_times) > len(self.resumed_times)

    # ------------------------------------------------------------------
    # Document round-trip
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Return a JSON-safe dict of every field."""
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> FastingSessionRecord:
        return cls.model_validate(document)


# ======================================================================
# Engine outputs
# ======================================================================


class StreakResult(BaseModel):
    """Output of the streak aggregator for a just-finalised session."""

    model_config = ConfigDict(frozen=True)

    current_streak: int = Field(..., ge=0)
    longest_streak: int = Field(..., ge=0)
    is_personal_best: bool


class FastingStatistics(BaseModel):
    """Summary of a user's fasting history."""

    total_sessions: int
    completed_sessions: int
    success_rate: float = Field(..., ge=0.0, le=1.0)
    total_fasting_time: Seconds
    average_completed_duration: Seconds
    longest_duration: Seconds
    current_streak: int
    longest_streak: int
    last_session_at: Optional[datetime.datetime] = None


class ProgressSnapshot(BaseModel):
    """Live progress view of a session at a given instant."""

    session_id: str
    state: FastingState
    as_of: datetime.datetime
    progress_fraction: float = Field(..., ge=0.0, le=1.0)
    elapsed_time: Seconds
    remaining_time: Seconds
    paused_duration: Seconds
    is_active_fasting: bool
    reached_milestones: list[float] = Field(default_factory=list)
    milestone_times: dict[float, datetime.datetime] = Field(default_factory=dict)
    crossed_milestones: list[float] = Field(default_factory=list)


# ======================================================================
# API request / response schemas
# ======================================================================


class FastingSessionCreate(BaseModel):
    """Schema for creating and starting a fasting session."""

    type: FastingType = Field(..., description="Fasting protocol")
    planned_duration_hours: Optional[float] = Field(
        None, description="Planned duration in hours (defaults to the protocol's standard duration)"
    )
    personal_goal: Optional[str] = Field(None, max_length=500)
    target_weight: Optional[float] = Field(None, gt=0)
    motivational_tags: list[str] = Field(default_factory=list)
    planned_start_time: Optional[datetime.datetime] = None


class FastingSessionEnd(BaseModel):
    """Schema for ending a fasting session."""

    reason: FastingEndReason
    notes: Optional[str] = Field(None, max_length=1000)


class FastingEngagementUpdate(BaseModel):
    """Schema for recording an engagement event."""

    snap_taken: bool = False
    motivation_viewed: bool = False
    app_opened: bool = False
    timer_checked: bool = False
    challenge_met: Optional[str] = None
    feature_used: Optional[str] = None


class FastingSessionResponse(BaseModel):
    """Schema for a fasting session in API responses."""

    session: FastingSessionRecord
    version: int
    progress: ProgressSnapshot
