"""
Fasting session database model.

The full session record is stored as a JSON document (the stable
persisted layout).  A handful of fields are mirrored into indexed columns
for querying, and ``version`` backs the compare-and-swap used to serialise
concurrent commands on the same session.

At most one session per user may be open (not yet completed or broken);
``ux_fasting_sessions_user_open`` enforces that in the database.
"""

import datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Index, text
from sqlmodel import Field, SQLModel

OPEN_STATES_SQL = "state IN ('notStarted', 'active', 'paused')"


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class FastingSessionRow(SQLModel, table=True):
    """Stored fasting session."""

    __tablename__ = "fasting_sessions"
    __table_args__ = (Index("ix_fasting_sessions_user_state", "user_id", "state"),
                      Index("ix_fasting_sessions_user_ended_at", "user_id", "ended_at"),
                      Index("ix_fasting_sessions_user_duration", "user_id", "end_reason", "actual_duration_seconds"),
                      Index("ux_fasting_sessions_user_open", "user_id", unique=True,
                            postgresql_where=text(OPEN_STATES_SQL), sqlite_where=text(OPEN_STATES_SQL)),)

    id: str = Field(primary_key=True, max_length=64)
    user_id: str = Field(nullable=False, max_length=128, index=True)

    # Mirrored from the document for filtering / ordering
    state: str = Field(nullable=False, max_length=20)
    end_reason: Optional[str] = Field(default=None, max_length=20)
    ended_at: Optional[datetime.datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    actual_duration_seconds: Optional[float] = Field(default=None)

    # Incremented on every committed write
    version: int = Field(default=1, nullable=False)

    document: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False), )

    # Timestamps (UTC)
    created_at: datetime.datetime = Field(default_factory=utc_now,
                                          sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime.datetime = Field(default_factory=utc_now,
                                          sa_column=Column(DateTime(timezone=True), nullable=False))
