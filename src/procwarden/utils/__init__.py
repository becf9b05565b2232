"""Shared utilities for procwarden."""

from ._exec import CommandConfig, CommandResult, run_command, truncate_output
from ._logging import (
    SERVICE_TIMESTAMP_FORMAT,
    SUPERVISOR_TIMESTAMP_FORMAT,
    LogFormatType,
    TeeLogger,
    create_transcript_logger,
    level_from_string,
    render_line,
)

__all__ = [
    "SERVICE_TIMESTAMP_FORMAT",
    "SUPERVISOR_TIMESTAMP_FORMAT",
    "CommandConfig",
    "CommandResult",
    "LogFormatType",
    "TeeLogger",
    "create_transcript_logger",
    "level_from_string",
    "render_line",
    "run_command",
    "truncate_output",
]
