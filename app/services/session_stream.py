"""
In-process change stream for fasting sessions.

Every committed write is published here; subscribers receive an
unbounded, long-lived async stream of record updates for one user.

Publishers may run in worker threads (FastAPI runs sync endpoints in a
thread pool) while subscribers live on an event loop, so delivery goes
through ``loop.call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import AsyncIterator

from app.core.logging import get_logger
from app.schemas.fasting_session import FastingSessionRecord

log = get_logger(__name__)


@dataclass(eq=False)
class _Subscriber:
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue


class SessionStreamBroker:
    """Fan-out of committed session records, keyed by user."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[_Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, ()))

    def publish(self, record: FastingSessionRecord) -> None:
        with self._lock:
            subscribers = list(self._subscribers.get(record.user_id, ()))
        for sub in subscribers:
            if sub.loop.is_closed():
                continue
            sub.loop.call_soon_threadsafe(sub.queue.put_nowait, record)
        log.debug("session_published", session_id=record.id, user_id=record.user_id, state=record.state.value,
                  subscribers=len(subscribers))

    async def stream_for(self, user_id: str) -> AsyncIterator[FastingSessionRecord]:
        """Yield every record committed for *user_id* from now on."""
        sub = _Subscriber(loop=asyncio.get_running_loop(), queue=asyncio.Queue())
        with self._lock:
            self._subscribers[user_id].append(sub)
        try:
            while True:
                yield await sub.queue.get()
        finally:
            with self._lock:
                remaining = self._subscribers.get(user_id)
                if remaining is not None:
                    remaining.remove(sub)
                    if not remaining:
                        del self._subscribers[user_id]


# Process-wide broker used by the API layer
session_stream_broker = SessionStreamBroker()
