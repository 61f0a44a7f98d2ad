"""
Streak aggregation.

Runs once per terminal transition, over the user's terminal sessions
ordered oldest → newest, and produces the denormalised streak fields of
the just-finalised record.  Two phases: :func:`compute_streak` reads the
history, :func:`attach_streak` writes the result onto the new record.

Rules
-----
- A session counts towards a streak iff ``end_reason == completed``.
- ``current_streak``: consecutive counting sessions ending at the newest.
- ``longest_streak``: longest run anywhere in history.  It never
  decreases: a run found in the (possibly truncated) history is compared
  with the ``longest_streak`` already recorded on earlier sessions.
- ``is_personal_best``: the new session is completed and its
  ``actual_duration`` beats every earlier completed session of the user.
  Sessions outside the window are covered by ``best_prior_duration``,
  the longest completed duration over the user's whole history.

History may be a window of the newest N sessions.  When the backward walk
exhausts that window without meeting a break, the oldest session's own
recorded ``current_streak`` carries the count further back.
"""

from __future__ import annotations

import datetime
from typing import Optional, Sequence

from app.fasting.errors import InvalidTransition
from app.schemas.fasting_session import FastingSessionRecord, StreakResult


def _prior_terminal(history: Sequence[FastingSessionRecord], record: FastingSessionRecord) -> list[
    FastingSessionRecord]:
    return [r for r in history if r.is_terminal and r.user_id == record.user_id and r.id != record.id]


def count_current_streak(sequence: list[FastingSessionRecord]) -> int:
    count = 0
    for r in reversed(sequence):
        if not r.is_successful:
            return count
        count += 1

    # Whole window was successful: continue from what the oldest one recorded.
    oldest = sequence[0] if sequence else None
    if oldest is not None and oldest.streak_recorded and oldest.current_streak > 1:
        count += oldest.current_streak - 1
    return count


def longest_successful_run(sequence: list[FastingSessionRecord]) -> int:
    longest = 0
    run = 0
    for r in sequence:
        run = run + 1 if r.is_successful else 0
        longest = max(longest, run)
    return longest


def longest_streak_of(sequence: list[FastingSessionRecord], current: int) -> int:
    """Longest run in *sequence*, never below *current* or any streak already recorded on it."""
    longest = max(longest_successful_run(sequence), current)
    for r in sequence:
        if r.streak_recorded:
            longest = max(longest, r.longest_streak)
    return longest


def _is_personal_best(prior: list[FastingSessionRecord], record: FastingSessionRecord,
                      best_prior_duration: Optional[datetime.timedelta]) -> bool:
    if not record.is_successful or record.actual_duration is None:
        return False
    if best_prior_duration is not None and record.actual_duration <= best_prior_duration:
        return False
    return all(record.actual_duration > p.actual_duration for p in prior if
               p.is_successful and p.actual_duration is not None)


def compute_streak(history: Sequence[FastingSessionRecord], record: FastingSessionRecord,
                   best_prior_duration: Optional[datetime.timedelta] = None) -> StreakResult:
    """Compute streak fields for *record* given the user's earlier sessions.

    Args:
        history: Terminal sessions of the same user, oldest first.  Entries
            that are not terminal, belong to another user, or are *record*
            itself are ignored.
        record: The just-finalised session.
        best_prior_duration: Longest completed duration among all of the
            user's earlier sessions, including those outside *history*.

    Returns:
        :class:`StreakResult` for *record*.
    """
    prior = _prior_terminal(history, record)
    sequence = [*prior, record]

    current = count_current_streak(sequence)
    return StreakResult(current_streak=current, longest_streak=longest_streak_of(sequence, current),
                        is_personal_best=_is_personal_best(prior, record, best_prior_duration), )


def attach_streak(record: FastingSessionRecord, result: StreakResult) -> FastingSessionRecord:
    """Write the streak fields onto a terminal record.  Allowed exactly once."""
    if not record.is_terminal:
        raise InvalidTransition("record streak for", record.state, "session has not ended")
    if record.streak_recorded:
        raise InvalidTransition("record streak for", record.state, "streak already recorded")
    return record.model_copy(deep=True, update={
        "current_streak": result.current_streak,
        "longest_streak": result.longest_streak,
        "is_personal_best": result.is_personal_best,
        "streak_recorded": True,
    })
