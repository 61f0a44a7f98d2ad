"""
Fasting engine error taxonomy.

All errors are local and synchronous.  ``InvalidTransition`` and
``InvalidDuration`` are raised *before* any new record is built, so a
rejected command never leaves a partially applied record behind.

``ClockAnomaly`` is never raised by a command: commands clamp instead, and
:func:`app.fasting.time_accounting.detect_clock_anomaly` hands the anomaly
back to the caller for logging.
"""

from __future__ import annotations

import datetime
from typing import Optional

from app.schemas.fasting_session import FastingState


class FastingEngineError(Exception):
    """Base class for every fasting engine error."""


class InvalidTransition(FastingEngineError):
    """Command not legal from the record's current state."""

    def __init__(self, command: str, state: FastingState, detail: Optional[str] = None):
        self.command = command
        self.state = state
        message = f"Cannot {command} a session in state '{state.value}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidDuration(FastingEngineError):
    """Non-positive or absurd planned duration."""

    def __init__(self, duration: datetime.timedelta, detail: str):
        self.duration = duration
        super().__init__(f"Invalid planned duration {duration}: {detail}")


class ClockAnomaly(FastingEngineError):
    """``now`` is earlier than a timestamp already recorded on the session."""

    def __init__(self, now: datetime.datetime, latest_recorded: datetime.datetime):
        self.now = now
        self.latest_recorded = latest_recorded
        self.skew = latest_recorded - now
        super().__init__(f"Clock moved backwards by {self.skew} (now={now.isoformat()}, "
                         f"latest recorded={latest_recorded.isoformat()})")
