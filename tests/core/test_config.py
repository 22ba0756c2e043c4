"""
Tests for settings and logging setup.
"""
import logging

import pytest
from pydantic import ValidationError

from chat_cache.config import Settings
from chat_cache.core.logging import JSON_FORMAT, configure_logging


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings()

        assert settings.message_page_size == 100
        assert settings.query_channels_limit == 30
        assert settings.query_retry_attempts == 3
        assert settings.query_retry_delay == 2.0

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("CHAT_CACHE_STORAGE_BACKEND", "kv")
        monkeypatch.setenv("CHAT_CACHE_SCHEMA_VERSION", "7")
        monkeypatch.setenv("CHAT_CACHE_LOG_LEVEL", " debug ")

        settings = Settings()

        assert settings.storage_backend == "kv"
        assert settings.schema_version == 7
        assert settings.log_level == "DEBUG"

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValidationError):
            Settings(storage_backend="postgres")


class TestConfigureLogging:
    """Tests for configure_logging() function."""

    @pytest.fixture(autouse=True)
    def reset_handlers(self):
        logger = logging.getLogger("chat_cache")
        saved = list(logger.handlers), logger.level
        logger.handlers = []
        yield
        logger.handlers, level = saved
        logger.setLevel(level)

    def test_sets_level_and_format(self):
        logger = configure_logging(Settings(log_level="warning", log_format="json"))

        assert logger.name == "chat_cache"
        assert logger.level == logging.WARNING
        [handler] = logger.handlers
        assert handler.formatter._fmt == JSON_FORMAT

    def test_does_not_stack_handlers(self):
        configure_logging(Settings())
        logger = configure_logging(Settings())

        assert len(logger.handlers) == 1
