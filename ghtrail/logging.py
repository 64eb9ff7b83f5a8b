"""femtologging helpers shared by the ghtrail poller.

All ghtrail modules log pre-formatted messages through these helpers so the
structured ``[event.type] key=value`` lines stay consistent whichever
component emits them.

Example:
>>> from ghtrail.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Polled %d feeds", 3)

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger


class LogLevel(enum.StrEnum):
    """Log levels accepted by ``GHTRAIL_LOG_LEVEL``."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_DEFAULT_LEVEL = LogLevel.INFO.value


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Return ``(level, invalid)`` for a raw level string.

    Unknown or empty values fall back to ``INFO`` and set the ``invalid``
    flag so callers can warn about the misconfiguration once logging is up.
    """
    if not level:
        return (_DEFAULT_LEVEL, True)

    candidate = level.strip().upper()
    if candidate in LogLevel.__members__:
        return (candidate, False)
    return (_DEFAULT_LEVEL, True)


def configure_logging(level: str | None, *, force: bool = False) -> tuple[str, bool]:
    """Install the femtologging root handler at the normalised level."""
    normalized, invalid = normalize_log_level(level)
    basicConfig(level=normalized, force=force)
    return (normalized, invalid)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into a percent-style template."""
    if not args:
        return template
    return template % args


class _SupportsLog(typ.Protocol):
    """Subset of the femtologging logger API used by ghtrail."""

    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def _emit(
    logger: _SupportsLog,
    level: LogLevel,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    logger.log(
        level.value,
        format_log_message(template, *args),
        exc_info=exc_info,
        stack_info=False,
    )


def log_debug(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a DEBUG message with percent-style formatting."""
    _emit(logger, LogLevel.DEBUG, template, args, exc_info)


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an INFO message with percent-style formatting."""
    _emit(logger, LogLevel.INFO, template, args, exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log a WARNING message with percent-style formatting."""
    _emit(logger, LogLevel.WARNING, template, args, exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Log an ERROR message with percent-style formatting."""
    _emit(logger, LogLevel.ERROR, template, args, exc_info)


def log_exception(logger: _SupportsLog, message: str, exc: BaseException) -> None:
    """Log ``message`` at ERROR with ``exc`` attached as exc_info."""
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
