"""
Shared API dependencies.

Reusable FastAPI dependencies for the request clock and the change stream.
Both are overridable in tests via ``app.dependency_overrides``.
"""

import datetime

from app.services.session_stream import SessionStreamBroker, session_stream_broker


def get_now() -> datetime.datetime:
    """The instant a request is evaluated at.  The engine never reads a clock itself."""
    return datetime.datetime.now(datetime.timezone.utc)


def get_stream_broker() -> SessionStreamBroker:
    return session_stream_broker
