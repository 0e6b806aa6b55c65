"""Leveled diagnostics for itack, rendered with rich.

Progress and debug chatter goes to stderr; ``info`` and ``success`` go to
stdout next to command output. The threshold comes from ``--log-level`` or
``ITACK_LOG_LEVEL`` and defaults to ``info``.
"""

from __future__ import annotations

import os
import sys
from enum import IntEnum

from rich.console import Console
from rich.text import Text


class LogLevel(IntEnum):
    TRACE = 10
    DEBUG = 20
    INFO = 30
    SUCCESS = 35
    WARNING = 40
    ERROR = 50


LEVEL_NAMES = tuple(level.name.lower() for level in LogLevel)

# level -> (style, goes to stderr)
_PRESENTATION: dict[LogLevel, tuple[str, bool]] = {
    LogLevel.TRACE: ("dim", True),
    LogLevel.DEBUG: ("cyan", True),
    LogLevel.INFO: ("", False),
    LogLevel.SUCCESS: ("green", False),
    LogLevel.WARNING: ("yellow", True),
    LogLevel.ERROR: ("bold red", True),
}

_configured_level: LogLevel | None = None
_no_color: bool | None = None


def parse_level(value: str | None) -> LogLevel:
    """Map a level name to a ``LogLevel``; unknown or empty names mean info.

    Example:
        >>> parse_level(" Debug ").name
        'DEBUG'
        >>> parse_level("warn") is LogLevel.WARNING
        True
        >>> parse_level("chatty") is LogLevel.INFO
        True
    """
    name = (value or "").strip().upper()
    if name == "WARN":
        name = "WARNING"
    return LogLevel.__members__.get(name, LogLevel.INFO)


def threshold() -> LogLevel:
    global _configured_level
    if _configured_level is None:
        _configured_level = parse_level(os.environ.get("ITACK_LOG_LEVEL"))
    return _configured_level


def set_level(value: str | None) -> None:
    global _configured_level
    _configured_level = parse_level(value)


def set_no_color(value: bool) -> None:
    """``True`` turns colour off; ``False`` falls back to the environment."""
    global _no_color
    _no_color = True if value else None


def color_disabled() -> bool:
    if _no_color is not None:
        return _no_color
    return any(os.environ.get(name) for name in ("NO_COLOR", "ITACK_NO_COLOR"))


def console(*, stderr: bool = False) -> Console:
    return Console(
        file=sys.stderr if stderr else sys.stdout,
        soft_wrap=True,
        highlight=False,
        no_color=color_disabled(),
    )


def emit(level: LogLevel, message: str, *, style: str | None = None) -> None:
    if level < threshold():
        return
    default_style, to_stderr = _PRESENTATION[level]
    console(stderr=to_stderr).print(Text(message, style=style or default_style))


def trace(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.TRACE, message, style=style)


def debug(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.DEBUG, message, style=style)


def info(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.INFO, message, style=style)


def success(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.SUCCESS, message, style=style)


def warning(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.WARNING, message, style=style)


def error(message: str, *, style: str | None = None) -> None:
    emit(LogLevel.ERROR, message, style=style)
