"""Unit tests for settings and logging configuration."""

import logging

import structlog

from extraction_layer.config import Settings
from extraction_layer.logging_config import (
    add_app_context,
    bind_run_context,
    clear_run_context,
    configure_logging,
)


def test_settings_defaults():
    settings = Settings(_env_file=None)

    assert settings.DEFAULT_RETRIES == 3
    assert settings.DEFAULT_TEMPERATURE == 0.4
    assert settings.DEFAULT_MAX_TOKENS == 4096
    assert settings.SESSION_BACKEND == "memory"
    assert settings.SESSION_MAX_AGE_SECONDS == 30 * 24 * 3600


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_RETRIES", "5")
    monkeypatch.setenv("session_backend", "redis")

    settings = Settings(_env_file=None)

    assert settings.DEFAULT_RETRIES == 5
    assert settings.SESSION_BACKEND == "redis"


def test_add_app_context():
    assert add_app_context(None, "info", {"event": "x"}) == {"event": "x", "app": "llm-extraction-layer"}


def test_configure_logging_sets_level(test_settings):
    configure_logging(log_level="WARNING", environment="production", settings=test_settings)

    root = logging.getLogger()
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging(settings=test_settings)
    assert logging.getLogger().level == logging.DEBUG


def test_run_context_binding():
    clear_run_context()
    bind_run_context(provider="ollama", session_id="s-1")

    assert structlog.contextvars.get_contextvars() == {"provider": "ollama", "session_id": "s-1"}

    clear_run_context()
    assert structlog.contextvars.get_contextvars() == {}


def test_configure_logging_development_console(test_settings, capsys):
    configure_logging(log_level="INFO", environment="development", settings=test_settings)

    handler = logging.getLogger().handlers[0]
    assert isinstance(handler.formatter.processors[-1], structlog.dev.ConsoleRenderer)

    try:
        1 / 0
    except ZeroDivisionError:
        logging.getLogger("test.console").exception("division failed")

    captured = capsys.readouterr()
    assert "division failed" in captured.out
    assert not captured.out.strip().split("\n")[-1].startswith("{")
