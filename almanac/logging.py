"""Logging helpers for Almanac.

Almanac emits pre-formatted, percent-style messages so log lines read the
same whether they come from the scheduler, the reaper, or the export API.

Example:
>>> from almanac.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Swept %d stuck reports", 3)

"""

from __future__ import annotations

import enum
import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LogLevel(enum.StrEnum):
    """Log levels accepted by ``configure_logging``."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        """Return the stdlib ``logging`` level number."""
        return logging.getLevelNamesMapping()[self.value]


_ALIASES = {"WARN": LogLevel.WARNING, "FATAL": LogLevel.CRITICAL}
_DEFAULT_LEVEL = LogLevel.INFO


def get_logger(name: str) -> logging.Logger:
    """Return the named logger."""
    return logging.getLogger(name)


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` for a raw level string.

    Unknown or empty values fall back to ``INFO`` and set ``invalid`` so the
    caller can warn about the misconfiguration once logging is live.
    """
    candidate = (level or "").strip().upper()
    if candidate in _ALIASES:
        return (_ALIASES[candidate].value, False)
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return (_DEFAULT_LEVEL.value, True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install the root logging configuration.

    Parameters
    ----------
    level : str
        Raw log level, usually read from ``ALMANAC_LOG_LEVEL``.
    force : bool, optional
        Replace any handler configuration already installed.

    Returns
    -------
    tuple[str, bool]
        The level that was applied and whether the input was invalid.

    """
    normalized, invalid = normalize_log_level(level)
    logging.basicConfig(level=normalized, format=_LOG_FORMAT, force=force)
    return (normalized, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into ``template`` with percent formatting."""
    return template % args if args else template


def _emit(
    logger: logging.Logger,
    level: LogLevel,
    template: str,
    args: tuple[object, ...],
    exc_info: BaseException | None,
) -> None:
    if not logger.isEnabledFor(level.numeric):
        return
    logger.log(level.numeric, format_log_message(template, *args), exc_info=exc_info)


def log_debug(
    logger: logging.Logger,
    template: str,
    *args: object,
    exc_info: BaseException | None = None,
) -> None:
    """Log a DEBUG message."""
    _emit(logger, LogLevel.DEBUG, template, args, exc_info)


def log_info(
    logger: logging.Logger,
    template: str,
    *args: object,
    exc_info: BaseException | None = None,
) -> None:
    """Log an INFO message."""
    _emit(logger, LogLevel.INFO, template, args, exc_info)


def log_warning(
    logger: logging.Logger,
    template: str,
    *args: object,
    exc_info: BaseException | None = None,
) -> None:
    """Log a WARNING message."""
    _emit(logger, LogLevel.WARNING, template, args, exc_info)


def log_error(
    logger: logging.Logger,
    template: str,
    *args: object,
    exc_info: BaseException | None = None,
) -> None:
    """Log an ERROR message."""
    _emit(logger, LogLevel.ERROR, template, args, exc_info)


def log_exception(logger: logging.Logger, message: str, exc: BaseException) -> None:
    """Log ``message`` at ERROR with ``exc`` attached as exception info."""
    _emit(logger, LogLevel.ERROR, message, (), exc)


__all__ = [
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
