"""
Unit tests for settings and log sink setup.
"""

import sys

import pytest
from loguru import logger
from pydantic import ValidationError

from config import Settings
from src.assessment.logging import configure_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.progress_save_mode == "immediate"
        assert settings.progress_flush_interval_seconds == 30.0
        assert settings.retry_xp_multiplier == 0.8
        assert settings.remediation_max_suggestions is None

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("QUIZFLOW_PROGRESS_SAVE_MODE", "debounced")
        monkeypatch.setenv("QUIZFLOW_PROGRESS_FLUSH_INTERVAL_SECONDS", "5")

        settings = Settings(_env_file=None)

        assert settings.progress_save_mode == "debounced"
        assert settings.progress_flush_interval_seconds == 5.0

    def test_invalid_mode_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, progress_save_mode="sometimes")


class TestConfigureLogging:
    def test_replaces_sinks(self, capsys):
        configure_logging("warning")
        try:
            logger.info("hidden")
            logger.warning("shown")

            err = capsys.readouterr().err
            assert "shown" in err
            assert "hidden" not in err
        finally:
            logger.remove()
            logger.add(sys.__stderr__)
