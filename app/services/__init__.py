"""Business logic services."""

from app.services.fasting_session_service import FastingSessionService
from app.services.session_stream import SessionStreamBroker, session_stream_broker

__all__ = [
    "FastingSessionService",
    "SessionStreamBroker",
    "session_stream_broker",
]
