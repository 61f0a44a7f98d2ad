"""
Fasting session endpoints.

Start / pause / resume / end commands, live progress, history, statistics
and the per-user change stream.  Sessions are scoped by ``user_id``.
"""

import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from app.api.dependencies import get_now, get_stream_broker
from app.db.session import get_db
from app.schemas.fasting_session import (FastingEngagementUpdate, FastingSessionCreate, FastingSessionEnd,
                                         FastingSessionResponse, FastingStatistics, ProgressSnapshot, )
from app.services.fasting_session_service import FastingSessionService
from app.services.session_stream import SessionStreamBroker

router = APIRouter()


@router.post("/sessions", summary="Create and start a fasting session.", response_model=FastingSessionResponse,
             status_code=status.HTTP_201_CREATED, )
def start_session(user_id: str, data: FastingSessionCreate, db: Session = Depends(get_db),
                  now: datetime.datetime = Depends(get_now),
                  broker: SessionStreamBroker = Depends(get_stream_broker), ):
    service = FastingSessionService(db, broker=broker)
    return service.create_and_start(user_id, data, now)


@router.get("/sessions/current", summary="Get the session that has not ended yet, if any.",
            response_model=Optional[FastingSessionResponse], )
def get_current_session(user_id: str, db: Session = Depends(get_db), now: datetime.datetime = Depends(get_now), ):
    service = FastingSessionService(db)
    return service.get_current(user_id, now)


@router.get("/sessions", summary="List recent fasting sessions, newest first.",
            response_model=list[FastingSessionResponse], )
def list_sessions(user_id: str, limit: int = Query(20, ge=1, le=100), db: Session = Depends(get_db),
                  now: datetime.datetime = Depends(get_now), ):
    service = FastingSessionService(db)
    return service.history(user_id, now, limit=limit)


@router.get("/sessions/{session_id}", summary="Get a fasting session.", response_model=FastingSessionResponse, )
def get_session(user_id: str, session_id: str, db: Session = Depends(get_db),
                now: datetime.datetime = Depends(get_now), ):
    service = FastingSessionService(db)
    return service.get_by_id(user_id, session_id, now)


@router.get("/sessions/{session_id}/progress", summary="Live progress of a fasting session.",
            response_model=ProgressSnapshot, )
def get_progress(user_id: str, session_id: str,
                 since: Optional[datetime.datetime] = Query(None, description="Previous poll instant"),
                 db: Session = Depends(get_db), now: datetime.datetime = Depends(get_now), ):
    service = FastingSessionService(db)
    return service.progress(user_id, session_id, now, since=since)


@router.post("/sessions/{session_id}/pause", summary="Pause an active session.",
             response_model=FastingSessionResponse, )
def pause_session(user_id: str, session_id: str, db: Session = Depends(get_db),
                  now: datetime.datetime = Depends(get_now),
                  broker: SessionStreamBroker = Depends(get_stream_broker), ):
    service = FastingSessionService(db, broker=broker)
    return service.pause(user_id, session_id, now)


@router.post("/sessions/{session_id}/resume", summary="Resume a paused session.",
             response_model=FastingSessionResponse, )
def resume_session(user_id: str, session_id: str, db: Session = Depends(get_db),
                   now: datetime.datetime = Depends(get_now),
                   broker: SessionStreamBroker = Depends(get_stream_broker), ):
    service = FastingSessionService(db, broker=broker)
    return service.resume(user_id, session_id, now)


@router.post("/sessions/{session_id}/end", summary="End a session (completed or broken).",
             response_model=FastingSessionResponse, )
def end_session(user_id: str, session_id: str, data: FastingSessionEnd, db: Session = Depends(get_db),
                now: datetime.datetime = Depends(get_now),
                broker: SessionStreamBroker = Depends(get_stream_broker), ):
    service = FastingSessionService(db, broker=broker)
    return service.end(user_id, session_id, data, now)


@router.post("/sessions/{session_id}/engagement", summary="Record an engagement event.",
             response_model=FastingSessionResponse, )
def record_engagement(user_id: str, session_id: str, data: FastingEngagementUpdate, db: Session = Depends(get_db),
                      now: datetime.datetime = Depends(get_now),
                      broker: SessionStreamBroker = Depends(get_stream_broker), ):
    service = FastingSessionService(db, broker=broker)
    return service.record_engagement(user_id, session_id, data, now)


@router.get("/statistics", summary="Fasting statistics over the user's history.",
            response_model=FastingStatistics, )
def get_statistics(user_id: str, db: Session = Depends(get_db), ):
    service = FastingSessionService(db)
    return service.statistics(user_id)


@router.get("/stream", summary="Stream committed session updates as NDJSON.")
async def stream_sessions(user_id: str, broker: SessionStreamBroker = Depends(get_stream_broker), ):
    async def _lines():
        async for record in broker.stream_for(user_id):
            yield record.model_dump_json() + "\n"

    return StreamingResponse(_lines(), media_type="application/x-ndjson")
