"""Shared CLI utilities.

This module provides common utilities used by both console scripts:
- Standardized exit codes
- Console utilities for error handling
- Reporting which configuration sources were read
"""

from enum import IntEnum
from typing import Never

from rich.console import Console
from structlog.typing import FilteringBoundLogger

from procwarden.config import Config

__all__ = [
    "ExitCode",
    "exit_with_error",
    "exit_with_success",
    "get_error_console",
    "log_config_sources",
]


class ExitCode(IntEnum):
    """Standard exit codes for procwarden CLI commands."""

    SUCCESS = 0
    USAGE_ERROR = 1
    PORT_CONFLICT = 2
    START_FAILED = 3
    STOP_FAILED = 4
    LOCK_TIMEOUT = 5
    CONFIG_ERROR = 6
    INTERNAL_ERROR = 7


def get_error_console() -> Console:
    """Get a Rich console configured for error output to stderr."""
    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.INTERNAL_ERROR,
    *,
    console: Console | None = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Args:
        message: The error message to display.
        code: The exit code to use (defaults to INTERNAL_ERROR).
        console: Optional Rich console for output. If not provided,
            a new stderr console will be created.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {message}", highlight=False)
    raise SystemExit(code)


def exit_with_success(
    message: str | None = None,
    *,
    console: Console | None = None,
) -> Never:
    """Print an optional message and exit with SUCCESS code.

    Raises:
        SystemExit: Always raised with ExitCode.SUCCESS (0).
    """
    if message is not None:
        if console is None:
            console = get_error_console()
        console.print(message)
    raise SystemExit(ExitCode.SUCCESS)


def log_config_sources(logger: FilteringBoundLogger, config: Config) -> None:
    """Log, at debug level, the configuration sources that were read."""
    sources = [
        f"{source.name.value} ({source.path})" if source.path else source.name.value
        for source in config.sources
        if source.exists
    ]
    logger.debug(
        f"Configuration sources: {', '.join(sources) or 'defaults'}",
        sources=sources,
    )
