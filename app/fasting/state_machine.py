"""
Fasting session state machine.

::

    notStarted ──start──▶ active ◀──resume── paused
                            │  └────pause────▶  │
                            └──────end──────────┴──▶ completed | broken

Every command is a total function ``(record, now, ...) -> record | error``:

- the previous record is never mutated, a new one is returned;
- ``now`` is always supplied by the caller;
- errors are raised before anything is built, so a rejected command leaves
  nothing half-applied;
- no I/O.  Persisting the result and notifying subscribers is the caller's
  job, after the command succeeds.

``end`` with reason ``completed`` is only accepted once progress has reached
the planned duration (within ``completion_tolerance``); the engine never
auto-completes a session on its own.
"""

from __future__ import annotations

import datetime
from typing import Any, Iterable, Optional, Sequence

from app.fasting.config import DEFAULT_CONFIG, FastingConfig
from app.fasting.errors import InvalidDuration, InvalidTransition
from app.fasting.streaks import attach_streak, compute_streak
from app.fasting.time_accounting import (adjusted_elapsed, closed_paused_duration, effective_now,
                                         progress_fraction, )
from app.schemas.fasting_session import (FastingEndReason, FastingEngagement, FastingMotivation,
                                         FastingSessionRecord, FastingState, FastingType, standard_duration, )

_ZERO = datetime.timedelta(0)


def _validate_duration(duration: datetime.timedelta, cfg: FastingConfig) -> None:
    if duration <= _ZERO:
        raise InvalidDuration(duration, "must be positive")
    if duration > cfg.max_planned_duration:
        raise InvalidDuration(duration, f"exceeds the maximum of {cfg.max_planned_duration}")


def _require_state(command: str, record: FastingSessionRecord, *allowed: FastingState) -> None:
    if record.state not in allowed:
        raise InvalidTransition(command, record.state)


# ======================================================================
# Creation
# ======================================================================


def new_session(session_id: str, user_id: str, fasting_type: FastingType, created_at: datetime.datetime,
                planned_duration: Optional[datetime.timedelta] = None,
                planned_start_time: Optional[datetime.datetime] = None, personal_goal: Optional[str] = None,
                target_weight: Optional[float] = None, motivational_tags: Iterable[str] = (),
                metadata: Optional[dict[str, Any]] = None,
                config: Optional[FastingConfig] = None, ) -> FastingSessionRecord:
    """Create a ``notStarted`` record.

    ``planned_duration`` defaults to the protocol's standard duration.

    Raises:
        InvalidDuration: if the duration is non-positive or absurd.
    """
    cfg = config or DEFAULT_CONFIG
    duration = planned_duration if planned_duration is not None else standard_duration(fasting_type)
    _validate_duration(duration, cfg)

    return FastingSessionRecord(id=session_id, user_id=user_id, type=fasting_type, state=FastingState.NOT_STARTED,
                                planned_start_time=planned_start_time, planned_duration=duration,
                                personal_goal=personal_goal, target_weight=target_weight,
                                motivational_tags=tuple(motivational_tags), metadata=dict(metadata or {}),
                                created_at=created_at, updated_at=created_at, )


# ======================================================================
# Commands
# ======================================================================


def start(record: FastingSessionRecord, now: datetime.datetime,
          planned_duration: Optional[datetime.timedelta] = None, personal_goal: Optional[str] = None,
          config: Optional[FastingConfig] = None, ) -> FastingSessionRecord:
    """Start a ``notStarted`` session at *now*.

    Raises:
        InvalidTransition: if the session has already begun.
        InvalidDuration: if the (overriding) planned duration is invalid.
    """
    cfg = config or DEFAULT_CONFIG
    _require_state("start", record, FastingState.NOT_STARTED)
    if record.actual_start_time is not None:
        raise InvalidTransition("start", record.state, "start time already recorded")

    duration = planned_duration if planned_duration is not None else record.planned_duration
    _validate_duration(duration, cfg)

    return record.model_copy(deep=True, update={
        "state": FastingState.ACTIVE,
        "planned_start_time": record.planned_start_time or now,
        "actual_start_time": now,
        "planned_end_time": now + duration,
        "planned_duration": duration,
        "personal_goal": personal_goal if personal_goal is not None else record.personal_goal,
        "updated_at": now,
    })


def pause(record: FastingSessionRecord, now: datetime.datetime) -> FastingSessionRecord:
    """Pause an ``active`` session.  No double-pause."""
    _require_state("pause", record, FastingState.ACTIVE)
    at = effective_now(record, now)
    return record.model_copy(deep=True, update={
        "state": FastingState.PAUSED,
        "paused_times": (*record.paused_times, at),
        "updated_at": at,
    })


def _close_open_pause(record: FastingSessionRecord, at: datetime.datetime) -> FastingSessionRecord:
    closed = record.model_copy(deep=True, update={"resumed_times": (*record.resumed_times, at)})
    return closed.model_copy(deep=True, update={"total_paused_duration": closed_paused_duration(closed)})


def resume(record: FastingSessionRecord, now: datetime.datetime) -> FastingSessionRecord:
    """Resume a ``paused`` session and recompute the paused total from the ledger."""
    _require_state("resume", record, FastingState.PAUSED)
    if not record.has_open_pause:
        raise InvalidTransition("resume", record.state, "pause ledger has no open interval")
    at = effective_now(record, now)
    resumed = _close_open_pause(record, at)
    return resumed.model_copy(deep=True, update={"state": FastingState.ACTIVE, "updated_at": at})


def end(record: FastingSessionRecord, reason: FastingEndReason, now: datetime.datetime,
        notes: Optional[str] = None, history: Sequence[FastingSessionRecord] = (),
        best_prior_duration: Optional[datetime.timedelta] = None,
        config: Optional[FastingConfig] = None, ) -> FastingSessionRecord:
    """Finalise an ``active`` or ``paused`` session.

    A pending pause is closed as of *now* first.  The streak aggregator then
    runs over *history* (the user's earlier terminal sessions, oldest first)
    and its result is attached to the returned record.  *best_prior_duration*
    is the longest completed duration over the user's entire history, for
    sessions older than *history* reaches.

    Raises:
        InvalidTransition: if the session is not running, or if *reason* is
            ``completed`` before the planned duration has elapsed.
    """
    cfg = config or DEFAULT_CONFIG
    _require_state("end", record, FastingState.ACTIVE, FastingState.PAUSED)
    at = effective_now(record, now)

    closed = _close_open_pause(record, at) if record.has_open_pause else record
    fraction = progress_fraction(closed, at)

    if reason == FastingEndReason.COMPLETED and fraction < 1.0 - cfg.completion_tolerance:
        raise InvalidTransition("complete", record.state,
                                f"only {fraction:.1%} of the planned duration has elapsed")

    ended = closed.model_copy(deep=True, update={
        "state": FastingState.COMPLETED if reason == FastingEndReason.COMPLETED else FastingState.BROKEN,
        "actual_end_time": at,
        "actual_duration": adjusted_elapsed(closed, at),
        "completion_percentage": min(fraction * 100.0, 100.0),
        "end_reason": reason,
        "end_notes": notes,
        "updated_at": at,
    })
    return attach_streak(ended, compute_streak(history, ended, best_prior_duration))


# ======================================================================
# Engagement (informational, never gates a transition)
# ======================================================================


def record_engagement(record: FastingSessionRecord, now: datetime.datetime, snap_taken: bool = False,
                      motivation_viewed: bool = False, app_opened: bool = False, timer_checked: bool = False,
                      challenge_met: Optional[str] = None,
                      feature_used: Optional[str] = None, ) -> FastingSessionRecord:
    """Bump engagement counters on a non-terminal session."""
    if record.is_terminal:
        raise InvalidTransition("record engagement for", record.state)

    current = record.engagement
    feature_usage = dict(current.feature_usage)
    if feature_used:
        feature_usage[feature_used] = feature_usage.get(feature_used, 0) + 1

    engagement = FastingEngagement(snaps_taken=current.snaps_taken + int(snap_taken),
                                   motivation_views=current.motivation_views + int(motivation_viewed),
                                   app_opens=current.app_opens + int(app_opened),
                                   timer_checks=current.timer_checks + int(timer_checked),
                                   challenges_met=(*current.challenges_met, challenge_met)
                                   if challenge_met else current.challenges_met,
                                   feature_usage=feature_usage, )
    return record.model_copy(deep=True, update={
        "engagement": engagement,
        "updated_at": max(now, record.updated_at),
    })


def record_motivation(record: FastingSessionRecord, motivation: FastingMotivation,
                      now: datetime.datetime) -> FastingSessionRecord:
    """Append a shown motivational item and count the view."""
    if record.is_terminal:
        raise InvalidTransition("record motivation for", record.state)
    with_view = record_engagement(record, now, motivation_viewed=True)
    return with_view.model_copy(deep=True, update={"motivation_shown": (*record.motivation_shown, motivation)})
