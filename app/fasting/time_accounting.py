"""
Time accounting: progress, elapsed and remaining time of a fasting session.

Every function here is pure: it takes a :class:`FastingSessionRecord` and a
reference instant supplied by the caller, and never reads a global clock.
That makes the functions safe to call as often as desired (a UI repaint
loop, the content filter) and fully deterministic under test.

Model
-----
::

    adjusted_elapsed = (upper_bound - actual_start_time) - paused_as_of(upper_bound)
    upper_bound      = actual_end_time ?? now

``paused_as_of`` sums the closed pause intervals of the ledger and, when the
session is currently paused, the open interval up to ``upper_bound``.

Conservation law (active / paused sessions)::

    remaining_time + min(adjusted_elapsed, planned_duration) == planned_duration

Clock skew
----------
If the device clock rolled back, ``now`` may precede recorded timestamps.
Every delta is clamped at zero so progress never goes negative;
:func:`detect_clock_anomaly` reports the skew so the caller can log it.
"""

from __future__ import annotations

import datetime
from typing import Optional

from app.fasting.errors import ClockAnomaly
from app.schemas.fasting_session import FastingSessionRecord, FastingState

_ZERO = datetime.timedelta(0)


def _non_negative(delta: datetime.timedelta) -> datetime.timedelta:
    return delta if delta > _ZERO else _ZERO


# ======================================================================
# Clock handling
# ======================================================================


def latest_recorded_instant(record: FastingSessionRecord) -> Optional[datetime.datetime]:
    """Return the most recent timestamp written by a transition, if any."""
    instants = [*record.paused_times, *record.resumed_times]
    if record.actual_start_time is not None:
        instants.append(record.actual_start_time)
    if record.actual_end_time is not None:
        instants.append(record.actual_end_time)
    return max(instants) if instants else None


def detect_clock_anomaly(record: FastingSessionRecord, now: datetime.datetime) -> Optional[ClockAnomaly]:
    """Return a :class:`ClockAnomaly` if *now* precedes a recorded timestamp."""
    latest = latest_recorded_instant(record)
    if latest is not None and now < latest:
        return ClockAnomaly(now=now, latest_recorded=latest)
    return None


def effective_now(record: FastingSessionRecord, now: datetime.datetime) -> datetime.datetime:
    """Clamp *now* so it never precedes the session's own ledger."""
    latest = latest_recorded_instant(record)
    if latest is not None and now < latest:
        return latest
    return now


# ======================================================================
# Pause ledger
# ======================================================================


def closed_paused_duration(record: FastingSessionRecord) -> datetime.timedelta:
    """Sum of ``resume - pause`` over every closed pause interval."""
    total = _ZERO
    for paused_at, resumed_at in zip(record.paused_times, record.resumed_times):
        total += _non_negative(resumed_at - paused_at)
    return total


def paused_duration_as_of(record: FastingSessionRecord, now: datetime.datetime) -> datetime.timedelta:
    """Total paused time up to *now*, including an in-progress pause."""
    total = closed_paused_duration(record)
    if record.has_open_pause:
        total += _non_negative(now - record.paused_times[-1])
    return total


# ======================================================================
# Elapsed / progress / remaining
# ======================================================================


def _upper_bound(record: FastingSessionRecord, now: datetime.datetime) -> datetime.datetime:
    return record.actual_end_time if record.actual_end_time is not None else now


def adjusted_elapsed(record: FastingSessionRecord, now: datetime.datetime) -> datetime.timedelta:
    """Fasting time so far: wall time since start minus paused time.  Uncapped."""
    if record.state == FastingState.NOT_STARTED or record.actual_start_time is None:
        return _ZERO
    bound = _upper_bound(record, now)
    wall = _non_negative(bound - record.actual_start_time)
    return _non_negative(wall - paused_duration_as_of(record, bound))


def elapsed_time(record: FastingSessionRecord, as_of: datetime.datetime) -> datetime.timedelta:
    """Elapsed fasting time, stable once the session has ended.

    Terminal sessions measure up to ``actual_end_time`` so reopening the app
    days later does not keep the number growing.
    """
    return adjusted_elapsed(record, as_of)


def progress_fraction(record: FastingSessionRecord, now: datetime.datetime) -> float:
    """Progress in ``[0.0, 1.0]``."""
    if record.state == FastingState.NOT_STARTED or record.actual_start_time is None:
        return 0.0
    if record.state == FastingState.COMPLETED:
        return 1.0
    planned = record.planned_duration
    if planned <= _ZERO:
        return 1.0
    elapsed = min(adjusted_elapsed(record, now), planned)
    return elapsed / planned


def remaining_time(record: FastingSessionRecord, now: datetime.datetime) -> datetime.timedelta:
    """Planned time still to go, floored at zero."""
    if record.state == FastingState.NOT_STARTED or record.actual_start_time is None:
        return record.planned_duration
    if record.state == FastingState.COMPLETED or record.planned_duration <= _ZERO:
        return _ZERO
    return _non_negative(record.planned_duration - adjusted_elapsed(record, now))


def is_active_fasting(record: FastingSessionRecord) -> bool:
    """``True`` only while the session is running (not paused, not ended)."""
    return record.state == FastingState.ACTIVE
