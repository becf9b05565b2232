"""Best-effort diagnostics reported by the running service itself."""

import shutil
from collections.abc import Callable

from procwarden.utils import CommandConfig, CommandResult, run_command

from ._models import DiagnosticsQuery

CommandRunner = Callable[[CommandConfig], CommandResult]


def parse_key_values(output: str, fields: tuple[str, ...] = ()) -> dict[str, str]:
    """Parse ``key:value`` lines, skipping blanks and ``#`` section headers.

    Args:
        output: Raw query output.
        fields: Keys to keep, in this order. Empty keeps every key.

    Returns:
        Mapping of the kept keys to their values.
    """
    parsed: dict[str, str] = {}
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, _, value = line.partition(":")
        parsed[key.strip()] = value.strip()

    if not fields:
        return parsed
    return {key: parsed[key] for key in fields if key in parsed}


def query_diagnostics(
    query: DiagnosticsQuery,
    port: int,
    *,
    runner: CommandRunner = run_command,
) -> dict[str, str]:
    """Run the diagnostics query against the service on ``port``.

    Never raises: a missing client, timeout or non-zero exit yields an
    empty mapping.
    """
    if not query.command or shutil.which(query.command[0]) is None:
        return {}

    argv = tuple(arg.replace("{port}", str(port)) for arg in query.command)
    result = runner(CommandConfig(argv=argv, timeout_ms=query.timeout_ms))
    if not result.success or result.exit_code != 0:
        return {}

    return parse_key_values(result.stdout, query.fields)
