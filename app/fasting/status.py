"""
Read-only status surface.

Collaborators that only need to *observe* a session (the content filter,
the reminder sink, the HTTP layer) go through here.  Nothing in this module
can produce a modified record.
"""

from __future__ import annotations

import datetime
from typing import Optional

from app.fasting.config import FastingConfig
from app.fasting.milestones import crossed_milestones, milestone_times, reached_milestones
from app.fasting.time_accounting import (elapsed_time, is_active_fasting, paused_duration_as_of, progress_fraction,
                                         remaining_time, )
from app.schemas.fasting_session import FastingSessionRecord, FastingState, ProgressSnapshot


class FastingStatusView:
    """Query-only wrapper around a session record."""

    __slots__ = ("_record",)

    def __init__(self, record: FastingSessionRecord):
        self._record = record

    @property
    def session_id(self) -> str:
        return self._record.id

    @property
    def user_id(self) -> str:
        return self._record.user_id

    @property
    def state(self) -> FastingState:
        return self._record.state

    def is_active_fasting(self) -> bool:
        return is_active_fasting(self._record)

    def progress_fraction(self, now: datetime.datetime) -> float:
        return progress_fraction(self._record, now)

    def remaining_time(self, now: datetime.datetime) -> datetime.timedelta:
        return remaining_time(self._record, now)


def progress_snapshot(record: FastingSessionRecord, now: datetime.datetime, config: Optional[FastingConfig] = None,
                      since: Optional[datetime.datetime] = None, ) -> ProgressSnapshot:
    """Bundle every live quantity of *record* at *now*.

    ``milestone_times`` projects each milestone for the reminder sink;
    with *since* (the previous poll), ``crossed_milestones`` lists the
    ones passed in between.
    """
    bound = record.actual_end_time or now
    return ProgressSnapshot(session_id=record.id, state=record.state, as_of=now,
                            progress_fraction=progress_fraction(record, now),
                            elapsed_time=elapsed_time(record, now), remaining_time=remaining_time(record, now),
                            paused_duration=paused_duration_as_of(record, bound),
                            is_active_fasting=is_active_fasting(record),
                            reached_milestones=reached_milestones(record, now, config),
                            milestone_times=milestone_times(record, now, config),
                            crossed_milestones=crossed_milestones(record, since, now, config)
                            if since is not None else [], )
