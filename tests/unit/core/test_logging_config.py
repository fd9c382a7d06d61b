"""Unit tests for structured logging setup."""

from __future__ import annotations

import pytest

from core.errors import MigratorConfigError
from core.logging_config import configure_logging, get_logger


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    configure_logging("info", force=True)


def test_configure_logging_rejects_unknown_level(monkeypatch: pytest.MonkeyPatch) -> None:
    """An unknown log level should fail with a config error."""
    monkeypatch.setenv("MIGRATOR_LOG_LEVEL", "chatty")

    with pytest.raises(MigratorConfigError):
        configure_logging(force=True)


def test_get_logger_ignores_level_until_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    """Creating module loggers never validates the level setting."""
    monkeypatch.setenv("MIGRATOR_LOG_LEVEL", "chatty")

    assert get_logger("tests.import_time") is not None


def test_logger_emits_json_events_with_name(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    """Events are rendered as JSON lines carrying the logger name."""
    monkeypatch.setenv("MIGRATOR_LOG_LEVEL", "debug")
    configure_logging(force=True)

    get_logger("tests.logging").warning("page_enqueued", facet="orders")

    output = capsys.readouterr().err
    assert '"event": "page_enqueued"' in output and '"logger": "tests.logging"' in output


def test_module_logger_follows_later_configuration(capsys) -> None:
    """A logger created before configuration uses the level set afterwards."""
    logger = get_logger("tests.early")
    configure_logging("error", force=True)

    logger.warning("filtered_event")
    logger.error("kept_event")

    output = capsys.readouterr().err
    assert "filtered_event" not in output and "kept_event" in output


def test_configure_logging_runs_once(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    """A second unforced call keeps the first configuration."""
    configure_logging("error", force=True)
    monkeypatch.setenv("MIGRATOR_LOG_LEVEL", "chatty")

    configure_logging()
    get_logger("tests.once").info("ignored_event")

    assert "ignored_event" not in capsys.readouterr().err
