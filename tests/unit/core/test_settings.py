"""Tests for application settings and structured logging."""

import datetime

from structlog.testing import capture_logs

from app.core.config import Settings
from app.core.logging import get_logger


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.STREAK_HISTORY_LIMIT == 200
        assert settings.LOG_FORMAT == "json"
        assert settings.DATABASE_URL.startswith("postgresql://")

    def test_fasting_config_from_environment(self, monkeypatch):
        monkeypatch.setenv("MAX_PLANNED_DURATION_HOURS", "48")
        monkeypatch.setenv("COMPLETION_TOLERANCE", "0.01")
        cfg = Settings(_env_file=None).fasting_config()
        assert cfg.max_planned_duration == datetime.timedelta(hours=48)
        assert cfg.completion_tolerance == 0.01
        assert cfg.milestones == (0.25, 0.5, 0.75, 0.9, 1.0)


class TestLogging:
    def test_events_carry_their_context(self):
        with capture_logs() as logs:
            get_logger("tests.logging").info("session_started", session_id="s1")
        assert logs == [{"event": "session_started", "session_id": "s1", "log_level": "info"}]
