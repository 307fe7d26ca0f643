"""Unit tests for the logging helpers.

Run with:
    pytest tests/unit/test_logging.py
"""

from __future__ import annotations

import logging

import pytest

from almanac.logging import (
    LogLevel,
    configure_logging,
    format_log_message,
    get_logger,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
    normalize_log_level,
)

_LOGGER_NAME = "almanac.tests.logging"


@pytest.mark.parametrize(
    ("input_level", "expected_level", "invalid_label"),
    [
        ("warning", "WARNING", "valid"),
        (" debug ", "DEBUG", "valid"),
        ("warn", "WARNING", "valid"),
        ("FATAL", "CRITICAL", "valid"),
        (None, "INFO", "invalid"),
        ("", "INFO", "invalid"),
        ("nope", "INFO", "invalid"),
    ],
)
def test_normalize_log_level(
    input_level: str | None,
    expected_level: str,
    invalid_label: str,
) -> None:
    """Normalize log levels and flag invalid inputs."""
    level, invalid = normalize_log_level(input_level)

    assert level == expected_level, (
        f"Expected {input_level!r} to normalize to {expected_level}."
    )
    assert invalid is (invalid_label == "invalid")


def test_log_level_numeric() -> None:
    """Levels map onto the standard library numbers."""
    assert LogLevel.WARNING.numeric == logging.WARNING
    assert LogLevel.CRITICAL.numeric == logging.CRITICAL


def test_format_log_message_uses_percent_formatting() -> None:
    """Percent formatting produces the expected message."""
    assert format_log_message("hello %s (%d)", "world", 3) == "hello world (3)"
    assert format_log_message("100% literal") == "100% literal"


def test_helpers_emit_formatted_records(caplog: pytest.LogCaptureFixture) -> None:
    """Each helper logs a pre-formatted message at its level."""
    logger = get_logger(_LOGGER_NAME)

    with caplog.at_level(logging.DEBUG, logger=_LOGGER_NAME):
        log_debug(logger, "debug %d", 1)
        log_info(logger, "hello %s", "world")
        log_warning(logger, "warning: %s", "oops")
        log_error(logger, "error: %s", "oops")

    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
        (logging.DEBUG, "debug 1"),
        (logging.INFO, "hello world"),
        (logging.WARNING, "warning: oops"),
        (logging.ERROR, "error: oops"),
    ]


def test_disabled_levels_are_not_emitted(caplog: pytest.LogCaptureFixture) -> None:
    """Messages below the logger level are dropped."""
    logger = get_logger(_LOGGER_NAME)

    with caplog.at_level(logging.WARNING, logger=_LOGGER_NAME):
        log_info(logger, "quiet %s", "please")

    assert caplog.records == []


def test_exc_info_is_attached(caplog: pytest.LogCaptureFixture) -> None:
    """Exception payloads travel with the record."""
    logger = get_logger(_LOGGER_NAME)
    exc = ValueError("boom")

    with caplog.at_level(logging.INFO, logger=_LOGGER_NAME):
        log_warning(logger, "warning: %s", "oops", exc_info=exc)
        log_exception(logger, "failed", exc)

    assert [r.exc_info[1] for r in caplog.records if r.exc_info] == [exc, exc]
    assert caplog.records[1].levelno == logging.ERROR


@pytest.mark.parametrize(
    ("input_level", "expected_normalized", "invalid_label"),
    [
        ("DEBUG", "DEBUG", "valid"),
        ("nope", "INFO", "invalid"),
    ],
)
def test_configure_logging(
    monkeypatch: pytest.MonkeyPatch,
    input_level: str,
    expected_normalized: str,
    invalid_label: str,
) -> None:
    """configure_logging normalizes input levels and flags invalid values."""
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr(logging, "basicConfig", fake_basic_config)

    normalized, invalid = configure_logging(input_level)

    assert normalized == expected_normalized
    assert invalid is (invalid_label == "invalid")
    assert captured.get("level") == expected_normalized
    assert captured.get("force") is False, "Expected basicConfig to keep handlers."
