"""SQLModel database models."""

from app.models.fasting_session import FastingSessionRow

__all__ = [
    "FastingSessionRow",
]
