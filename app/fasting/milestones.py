"""
Progress milestones.

The engine does not schedule alarms.  It only answers two questions for
the caller's reminder sink:

- when would each milestone be reached if the session ran uninterrupted
  from now on (:func:`milestone_times`);
- which milestones were crossed between two polls
  (:func:`crossed_milestones`).
"""

from __future__ import annotations

import datetime
from typing import Optional

from app.fasting.config import DEFAULT_CONFIG, FastingConfig
from app.fasting.time_accounting import paused_duration_as_of, progress_fraction
from app.schemas.fasting_session import FastingSessionRecord, FastingState


def reached_milestones(record: FastingSessionRecord, now: datetime.datetime,
                       config: Optional[FastingConfig] = None) -> list[float]:
    cfg = config or DEFAULT_CONFIG
    fraction = progress_fraction(record, now)
    return [m for m in cfg.milestones if m <= fraction]


def milestone_times(record: FastingSessionRecord, now: datetime.datetime,
                    config: Optional[FastingConfig] = None, ) -> dict[float, datetime.datetime]:
    """Projected instant of each milestone, assuming no further pauses.

    A paused session projects as if it resumed at *now*.  Sessions that have
    not started or have already ended have no projection.
    """
    cfg = config or DEFAULT_CONFIG
    if record.state not in (FastingState.ACTIVE, FastingState.PAUSED) or record.actual_start_time is None:
        return {}

    base = record.actual_start_time + paused_duration_as_of(record, now)
    return {m: base + record.planned_duration * m for m in cfg.milestones}


def crossed_milestones(record: FastingSessionRecord, since: datetime.datetime, now: datetime.datetime,
                       config: Optional[FastingConfig] = None, ) -> list[float]:
    """Milestones whose fraction lies in ``(progress(since), progress(now)]``."""
    cfg = config or DEFAULT_CONFIG
    before = progress_fraction(record, since)
    after = progress_fraction(record, now)
    return [m for m in cfg.milestones if before < m <= after]
