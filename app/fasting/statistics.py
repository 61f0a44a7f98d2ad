"""
Fasting statistics over a user's history.

Only terminal sessions participate; a session still running has no
``actual_duration`` yet and would skew the averages.  Streaks are
recomputed with the same rules as :mod:`app.fasting.streaks`, so a
truncated history still reports a longest streak no shorter than the
current one.
"""

from __future__ import annotations

import datetime
from typing import Sequence

from app.fasting.streaks import count_current_streak, longest_streak_of
from app.schemas.fasting_session import FastingSessionRecord, FastingStatistics

_ZERO = datetime.timedelta(0)


def compute_statistics(history: Sequence[FastingSessionRecord]) -> FastingStatistics:
    """Summarise *history* (oldest first)."""
    terminal = [r for r in history if r.is_terminal]
    completed = [r for r in terminal if r.is_successful]

    durations = [r.actual_duration or _ZERO for r in terminal]
    completed_total = sum((r.actual_duration or _ZERO for r in completed), _ZERO)

    ended = [r.actual_end_time for r in terminal if r.actual_end_time is not None]
    current = count_current_streak(terminal)

    return FastingStatistics(total_sessions=len(terminal), completed_sessions=len(completed),
                             success_rate=len(completed) / len(terminal) if terminal else 0.0,
                             total_fasting_time=sum(durations, _ZERO),
                             average_completed_duration=completed_total / len(completed) if completed else _ZERO,
                             longest_duration=max(durations, default=_ZERO),
                             current_streak=current,
                             longest_streak=longest_streak_of(terminal, current),
                             last_session_at=max(ended, default=None), )
