"""The ``procwarden-supervise`` console script."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

import os
from pathlib import Path
from typing import Annotated

import anyio
from cyclopts import App, Parameter
from rich.console import Console

from procwarden.config import Config, ConfigError, safe_load_config
from procwarden.supervisor import Supervisor
from procwarden.utils import (
    SUPERVISOR_TIMESTAMP_FORMAT,
    create_transcript_logger,
    level_from_string,
)

from ._shared import ExitCode, exit_with_error, log_config_sources


def build_supervisor(config: Config, console: Console | None) -> Supervisor:
    """Build the Supervisor described by ``config``.

    Args:
        config: Loaded configuration.
        console: Console mirroring the transcript, or None for file-only.
    """
    settings = config.supervisor
    logger = create_transcript_logger(
        settings.log_file,
        timestamp_format=SUPERVISOR_TIMESTAMP_FORMAT,
        console=console if config.logging.console else None,
        log_level=level_from_string(config.logging.level.value),
        log_format=config.logging.format.value,  # type: ignore[arg-type]
    )
    log_config_sources(logger, config)
    env = {**os.environ, **settings.env} if settings.env else None
    return Supervisor(
        settings.command,
        settings.to_policy(),
        logger=logger,
        name=settings.name,
        cwd=settings.worker_cwd(),
        env=env,
        shutdown_timeout=settings.shutdown_timeout,
        handle_signals=True,
    )


def create_supervise_app(
    console: Console | None = None,
    error_console: Console | None = None,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)

    app = App(
        name="procwarden-supervise",
        help="Keep a worker process alive under a bounded restart budget.",
        help_on_error=True,
        console=console,
        error_console=error_console,
    )

    @app.default
    def _supervise(  # pyright: ignore[reportUnusedFunction]
        *,
        config: Annotated[
            Path | None, Parameter(name="--config", help="Path to config file")
        ] = None,
        max_attempts: Annotated[
            int | None,
            Parameter(name="--max-attempts", help="Total launch attempts"),
        ] = None,
        retry_delay: Annotated[
            float | None,
            Parameter(name="--retry-delay", help="Seconds between restarts"),
        ] = None,
        quiet: Annotated[
            bool, Parameter(help="Do not mirror the transcript to stdout")
        ] = False,
    ) -> None:
        """Run the worker, restarting it on every exit until the budget is used.

        Args:
            config: Explicit path to config file.
            max_attempts: Override ``supervisor.max_attempts``.
            retry_delay: Override ``supervisor.retry_delay``.
            quiet: Write the transcript to the log file only.
        """
        overrides: dict[str, object] = {}
        if max_attempts is not None:
            overrides["max_attempts"] = max_attempts
        if retry_delay is not None:
            overrides["retry_delay"] = retry_delay

        try:
            loaded, _ = safe_load_config(
                config_path=config,
                cli_overrides={"supervisor": overrides} if overrides else None,
            )
        except ConfigError as e:
            exit_with_error(str(e), ExitCode.CONFIG_ERROR, console=error_console)

        supervisor = build_supervisor(loaded, None if quiet else console)
        _ = anyio.run(supervisor.run)

        # Exhausted budget and cancellation both end the run normally
        raise SystemExit(ExitCode.SUCCESS)

    return app


def main() -> None:
    """Default entrypoint for the ``procwarden-supervise`` CLI."""
    app = create_supervise_app()
    app()
