"""
Fasting session repository.

Handles database operations for :class:`FastingSessionRow` and converts
rows to and from :class:`FastingSessionRecord`.

Writes after creation go through :meth:`save_if_version`, a
compare-and-swap on the row's ``version``: two near-simultaneous commands
on the same session cannot both commit.  Creation relies on the
``ux_fasting_sessions_user_open`` unique index instead: a second open
session for the same user is refused by the database.
"""

import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from app.core.logging import get_logger
from app.models.fasting_session import FastingSessionRow, utc_now
from app.schemas.fasting_session import FastingEndReason, FastingSessionRecord, FastingState

log = get_logger(__name__)

_OPEN_STATES = (FastingState.NOT_STARTED.value, FastingState.ACTIVE.value, FastingState.PAUSED.value)
_TERMINAL_STATES = (FastingState.COMPLETED.value, FastingState.BROKEN.value)


def _to_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def _columns(record: FastingSessionRecord) -> dict:
    duration = record.actual_duration
    return {
        "state": record.state.value,
        "end_reason": record.end_reason.value if record.end_reason else None,
        "ended_at": _to_utc(record.actual_end_time),
        "actual_duration_seconds": duration.total_seconds() if duration is not None else None,
        "document": record.to_document(),
        "updated_at": utc_now(),
    }


class FastingSessionRepository:
    """Repository for fasting session database operations."""

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def to_record(row: FastingSessionRow) -> FastingSessionRecord:
        return FastingSessionRecord.from_document(row.document)

    def create(self, record: FastingSessionRecord) -> Optional[FastingSessionRow]:
        """Insert a new session.

        Returns ``None`` if the database refused it, i.e. the user already
        has an open session (or the id is taken).
        """
        row = FastingSessionRow(id=record.id, user_id=record.user_id, version=1,
                                created_at=_to_utc(record.created_at), **_columns(record))
        self.session.add(row)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            log.warning("session_insert_conflict", session_id=record.id, user_id=record.user_id,
                        reason=str(e.orig))
            return None
        self.session.refresh(row)
        return row

    def get_by_id(self, session_id: str) -> Optional[FastingSessionRow]:
        return self.session.get(FastingSessionRow, session_id)

    def get_open_for_user(self, user_id: str) -> Optional[FastingSessionRow]:
        """Return the user's session that has not ended yet, if any."""
        statement = (select(FastingSessionRow).where(FastingSessionRow.user_id == user_id,
                                                     col(FastingSessionRow.state).in_(_OPEN_STATES), ).order_by(
            col(FastingSessionRow.created_at).desc()))
        return self.session.exec(statement).first()

    def list_for_user(self, user_id: str, limit: int = 50) -> list[FastingSessionRow]:
        """Most recent sessions first."""
        statement = (select(FastingSessionRow).where(FastingSessionRow.user_id == user_id).order_by(
            col(FastingSessionRow.created_at).desc()).limit(limit))
        return list(self.session.exec(statement).all())

    # ------------------------------------------------------------------
    # Streak history
    # ------------------------------------------------------------------

    def list_terminal_for_user(self, user_id: str, limit: Optional[int] = None,
                               exclude_id: Optional[str] = None, ) -> list[FastingSessionRecord]:
        """Terminal sessions of *user_id*, oldest first.

        With *limit*, only the newest ``limit`` sessions are returned (still
        oldest first).
        """
        statement = select(FastingSessionRow).where(FastingSessionRow.user_id == user_id,
                                                    col(FastingSessionRow.state).in_(_TERMINAL_STATES), )
        if exclude_id is not None:
            statement = statement.where(FastingSessionRow.id != exclude_id)
        statement = statement.order_by(col(FastingSessionRow.ended_at).desc(), col(FastingSessionRow.id).desc())
        if limit is not None:
            statement = statement.limit(limit)
        rows = list(self.session.exec(statement).all())
        rows.reverse()
        return [self.to_record(r) for r in rows]

    def best_completed_duration(self, user_id: str,
                                exclude_id: Optional[str] = None) -> Optional[datetime.timedelta]:
        """Longest ``actual_duration`` over every completed session of *user_id*."""
        statement = select(func.max(FastingSessionRow.actual_duration_seconds)).where(
            FastingSessionRow.user_id == user_id, FastingSessionRow.end_reason == FastingEndReason.COMPLETED.value, )
        if exclude_id is not None:
            statement = statement.where(FastingSessionRow.id != exclude_id)
        seconds = self.session.exec(statement).first()
        return datetime.timedelta(seconds=seconds) if seconds is not None else None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def save_if_version(self, record: FastingSessionRecord, expected_version: int) -> Optional[int]:
        """Persist *record* only if the stored version is still *expected_version*.

        Returns the new version, or ``None`` if another writer got there first.
        """
        new_version = expected_version + 1
        statement = (update(FastingSessionRow).where(col(FastingSessionRow.id) == record.id,
                                                     col(FastingSessionRow.version) == expected_version, ).values(
            version=new_version, **_columns(record)))
        result = self.session.execute(statement)
        if result.rowcount != 1:
            self.session.rollback()
            return None
        self.session.commit()
        return new_version

