"""Logging utilities for procwarden.

This module provides standalone structlog logger factories for the
supervisor and service controller transcripts. Each transcript line is
appended to a log file and mirrored to the console. Each logger is
self-contained and does not modify global structlog configuration.
"""

import logging
import threading
from os import getenv
from pathlib import Path
from typing import IO, Final, Literal, cast, final

import structlog
from rich.console import Console
from rich.style import Style
from rich.text import Text
from structlog.typing import EventDict, FilteringBoundLogger, Processor, WrappedLogger

LogFormatType = Literal["line", "json", "text"]

# strftime formats for the two transcript flavours
SUPERVISOR_TIMESTAMP_FORMAT: Final = "%b %d %H:%M:%S %Y"
SERVICE_TIMESTAMP_FORMAT: Final = "%Y-%m-%d %H:%M:%S"

_LEVEL_STYLES: Final[dict[str, Style]] = {
    "debug": Style(dim=True),
    "info": Style(),
    "warning": Style(color="yellow"),
    "error": Style(color="red", bold=True),
    "critical": Style(color="red", bold=True, reverse=True),
}


def _get_log_level(default: str = "info") -> int:
    """Get the log level from environment variables.

    Checks PROCWARDEN_DEBUG first (sets DEBUG if present), then
    PROCWARDEN_LOG_LEVEL, then falls back to ``default``.

    Returns:
        The logging level as an integer.
    """
    if getenv("PROCWARDEN_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    level = getenv("PROCWARDEN_LOG_LEVEL", default)
    return log_levels.get(level.upper(), logging.INFO)


@final
class TeeLogger:
    """Raw structlog logger that appends to a file and mirrors to a console.

    structlog calls the method named after the log level with the rendered
    line; the level picks the console style.
    """

    __slots__ = ("_console", "_file", "_lock")

    def __init__(self, file: IO[str] | None, console: Console | None) -> None:
        """Initialize the tee.

        Args:
            file: Open text stream for the transcript file, or None.
            console: Console that mirrors each line, or None for file-only.
        """
        self._file = file
        self._console = console
        self._lock = threading.Lock()

    def _emit(self, level: str, message: str) -> None:
        with self._lock:
            if self._file is not None:
                _ = self._file.write(message + "\n")
                self._file.flush()
            if self._console is not None:
                text = Text(message, style=_LEVEL_STYLES.get(level, Style()))
                self._console.print(text, soft_wrap=True, highlight=False)

    def debug(self, message: str) -> None:
        self._emit("debug", message)

    def info(self, message: str) -> None:
        self._emit("info", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def critical(self, message: str) -> None:
        self._emit("critical", message)

    msg = info
    warn = warning
    exception = error
    fatal = critical

    def close(self) -> None:
        """Close the transcript file, if any."""
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


def render_line(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> str:
    """Render an event as ``<timestamp>: <message>``.

    Extra key/value pairs are only kept by the json and text formats.
    """
    return f"{event_dict.get('timestamp', '')}: {event_dict.get('event', '')}"


def create_transcript_logger(
    log_file: str | Path | None,
    *,
    timestamp_format: str,
    console: Console | None = None,
    log_level: int | None = None,
    log_format: LogFormatType = "line",
) -> FilteringBoundLogger:
    """Create a standalone structlog logger writing a transcript.

    Args:
        log_file: Path to the transcript file (opened in append mode). None or
            an empty string disables the file and only mirrors to the console.
        timestamp_format: strftime format for the local-time timestamp.
        console: Console mirror. None writes to the file only.
        log_level: Override log level (uses env vars if not specified).
        log_format: "line" for ``<timestamp>: <message>``, "json" or "text".

    Returns:
        A configured FilteringBoundLogger instance.
    """
    stream: IO[str] | None = None
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        stream = log_path.open("a", encoding="utf-8")

    effective_level = log_level if log_level is not None else _get_log_level()

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt=timestamp_format, utc=False),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    elif log_format == "text":
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(render_line)

    wrapper_class = structlog.make_filtering_bound_logger(effective_level)

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            TeeLogger(stream, console),
            processors=processors,
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )


def level_from_string(level: str, *, respect_env: bool = True) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: If True, PROCWARDEN_DEBUG / PROCWARDEN_LOG_LEVEL win.

    Returns:
        The logging level as an integer.
    """
    if respect_env:
        return _get_log_level(level)

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)
