"""
Fasting engine configuration.

Tunables are encapsulated in :class:`FastingConfig` so that nothing is
hard-coded in the engine and tests can inject their own values.
"""

from __future__ import annotations

import datetime

from pydantic import BaseModel, Field

# Milestone fractions surfaced to the reminder sink.
_DEFAULT_MILESTONES: tuple[float, ...] = (0.25, 0.5, 0.75, 0.9, 1.0)


class FastingConfig(BaseModel):
    """Configuration for the fasting engine."""

    # ``end(completed)`` is only legal once progress reaches 1 - tolerance.
    completion_tolerance: float = Field(0.001, ge=0.0, lt=0.5)
    # Anything above this is rejected by ``start`` as absurd.
    max_planned_duration: datetime.timedelta = Field(datetime.timedelta(days=7))
    milestones: tuple[float, ...] = Field(default=_DEFAULT_MILESTONES)


DEFAULT_CONFIG = FastingConfig()
