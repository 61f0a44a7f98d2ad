"""
Fasting session service.

Applies engine commands to stored sessions:

1. load the last committed record and its version,
2. run the pure engine command with the caller's ``now``,
3. commit with a compare-and-swap on the version,
4. publish the new record to the change stream.

Engine errors are translated into HTTP errors here; nothing is swallowed,
so a rejected pause never leaves the client believing the session paused.
"""

import datetime
import uuid
from typing import Callable, Optional

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.config import settings
from app.core.logging import get_logger
from app.db.repositories.fasting_session import FastingSessionRepository
from app.fasting import state_machine
from app.fasting.config import FastingConfig
from app.fasting.errors import FastingEngineError, InvalidDuration, InvalidTransition
from app.fasting.statistics import compute_statistics
from app.fasting.status import progress_snapshot
from app.fasting.time_accounting import detect_clock_anomaly
from app.models.fasting_session import FastingSessionRow
from app.schemas.fasting_session import (FastingEngagementUpdate, FastingSessionCreate, FastingSessionEnd,
                                         FastingSessionRecord, FastingSessionResponse, FastingStatistics,
                                         ProgressSnapshot, )
from app.services.session_stream import SessionStreamBroker, session_stream_broker

log = get_logger(__name__)


def _as_utc(now: datetime.datetime) -> datetime.datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=datetime.timezone.utc)
    return now.astimezone(datetime.timezone.utc)


def _to_http(error: FastingEngineError) -> HTTPException:
    if isinstance(error, InvalidDuration):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))
    if isinstance(error, InvalidTransition):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


class FastingSessionService:
    """Service for fasting session business logic."""

    def __init__(self, session: Session, broker: Optional[SessionStreamBroker] = None,
                 config: Optional[FastingConfig] = None, history_limit: Optional[int] = None, ):
        self.repository = FastingSessionRepository(session)
        self.broker = broker or session_stream_broker
        self.config = config or settings.fasting_config()
        self.history_limit = history_limit or settings.STREAK_HISTORY_LIMIT

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_and_start(self, user_id: str, data: FastingSessionCreate,
                         now: datetime.datetime) -> FastingSessionResponse:
        now = _as_utc(now)
        open_row = self.repository.get_open_for_user(user_id)
        if open_row is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail=f"Session '{open_row.id}' is still {open_row.state}; end it first", )

        planned = (datetime.timedelta(hours=data.planned_duration_hours)
                   if data.planned_duration_hours is not None else None)
        try:
            record = state_machine.new_session(session_id=uuid.uuid4().hex, user_id=user_id,
                                               fasting_type=data.type, created_at=now, planned_duration=planned,
                                               planned_start_time=data.planned_start_time,
                                               personal_goal=data.personal_goal, target_weight=data.target_weight,
                                               motivational_tags=data.motivational_tags, config=self.config, )
            record = state_machine.start(record, now, config=self.config)
        except FastingEngineError as e:
            log.info("session_command_rejected", command="start", user_id=user_id, reason=str(e))
            raise _to_http(e) from e

        row = self.repository.create(record)
        if row is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="Another session is already open for this user; end it first", )
        self.broker.publish(record)
        log.info("session_started", session_id=record.id, user_id=user_id, type=record.type.value,
                 planned_hours=record.planned_duration.total_seconds() / 3600)
        return self._to_response(record, row.version, now)

    def pause(self, user_id: str, session_id: str, now: datetime.datetime) -> FastingSessionResponse:
        return self._apply(user_id, session_id, "pause", lambda r, at: state_machine.pause(r, at), now)

    def resume(self, user_id: str, session_id: str, now: datetime.datetime) -> FastingSessionResponse:
        return self._apply(user_id, session_id, "resume", lambda r, at: state_machine.resume(r, at), now)

    def end(self, user_id: str, session_id: str, data: FastingSessionEnd,
            now: datetime.datetime) -> FastingSessionResponse:
        history = self.repository.list_terminal_for_user(user_id, limit=self.history_limit, exclude_id=session_id)
        best = self.repository.best_completed_duration(user_id, exclude_id=session_id)
        return self._apply(user_id, session_id, "end",
                           lambda r, at: state_machine.end(r, data.reason, at, notes=data.notes, history=history,
                                                           best_prior_duration=best, config=self.config), now, )

    def record_engagement(self, user_id: str, session_id: str, data: FastingEngagementUpdate,
                          now: datetime.datetime) -> FastingSessionResponse:
        return self._apply(user_id, session_id, "record_engagement",
                           lambda r, at: state_machine.record_engagement(r, at, snap_taken=data.snap_taken,
                                                                         motivation_viewed=data.motivation_viewed,
                                                                         app_opened=data.app_opened,
                                                                         timer_checked=data.timer_checked,
                                                                         challenge_met=data.challenge_met,
                                                                         feature_used=data.feature_used, ), now, )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: str, session_id: str, now: datetime.datetime) -> FastingSessionResponse:
        row = self._get_owned_row(user_id, session_id)
        return self._to_response(self.repository.to_record(row), row.version, _as_utc(now))

    def get_current(self, user_id: str, now: datetime.datetime) -> Optional[FastingSessionResponse]:
        row = self.repository.get_open_for_user(user_id)
        if row is None:
            return None
        return self._to_response(self.repository.to_record(row), row.version, _as_utc(now))

    def progress(self, user_id: str, session_id: str, now: datetime.datetime,
                 since: Optional[datetime.datetime] = None) -> ProgressSnapshot:
        """Live progress.  With *since*, also report the milestones crossed after that poll."""
        row = self._get_owned_row(user_id, session_id)
        now = _as_utc(now)
        record = self.repository.to_record(row)
        self._log_clock_anomaly(record, now)
        return progress_snapshot(record, now, self.config, since=_as_utc(since) if since is not None else None)

    def history(self, user_id: str, now: datetime.datetime, limit: int = 20) -> list[FastingSessionResponse]:
        now = _as_utc(now)
        rows = self.repository.list_for_user(user_id, limit=limit)
        return [self._to_response(self.repository.to_record(r), r.version, now) for r in rows]

    def statistics(self, user_id: str) -> FastingStatistics:
        return compute_statistics(self.repository.list_terminal_for_user(user_id, limit=self.history_limit))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply(self, user_id: str, session_id: str, command: str,
               transition: Callable[[FastingSessionRecord, datetime.datetime], FastingSessionRecord],
               now: datetime.datetime, ) -> FastingSessionResponse:
        now = _as_utc(now)
        row = self._get_owned_row(user_id, session_id)
        expected_version = row.version
        record = self.repository.to_record(row)
        self._log_clock_anomaly(record, now)

        try:
            updated = transition(record, now)
        except FastingEngineError as e:
            log.info("session_command_rejected", command=command, session_id=session_id, state=record.state.value,
                     reason=str(e))
            raise _to_http(e) from e

        new_version = self.repository.save_if_version(updated, expected_version)
        if new_version is None:
            log.warning("session_write_conflict", command=command, session_id=session_id,
                        expected_version=expected_version)
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="Session was modified concurrently; reload and retry", )

        self.broker.publish(updated)
        log.info("session_transition", command=command, session_id=session_id, user_id=user_id,
                 from_state=record.state.value, to_state=updated.state.value, version=new_version)
        return self._to_response(updated, new_version, now)

    def _get_owned_row(self, user_id: str, session_id: str) -> FastingSessionRow:
        row = self.repository.get_by_id(session_id)
        if not row or row.user_id != user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fasting session not found", )
        return row

    @staticmethod
    def _log_clock_anomaly(record: FastingSessionRecord, now: datetime.datetime) -> None:
        anomaly = detect_clock_anomaly(record, now)
        if anomaly is not None:
            log.warning("clock_anomaly", session_id=record.id, skew_seconds=anomaly.skew.total_seconds(),
                        now=now.isoformat(), latest_recorded=anomaly.latest_recorded.isoformat())

    def _to_response(self, record: FastingSessionRecord, version: int,
                     now: datetime.datetime) -> FastingSessionResponse:
        return FastingSessionResponse(session=record, version=version,
                                      progress=progress_snapshot(record, now, self.config))
