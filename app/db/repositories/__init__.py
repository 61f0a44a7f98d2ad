"""Database repositories."""

from app.db.repositories.fasting_session import FastingSessionRepository

__all__ = [
    "FastingSessionRepository",
]
