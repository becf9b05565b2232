"""The ``procwarden-service`` console script."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from collections.abc import Callable
from pathlib import Path
from typing import Annotated

import pendulum
from cyclopts import App, Parameter
from rich.console import Console
from rich.table import Table
from structlog.typing import FilteringBoundLogger

from procwarden.config import Config, ConfigError, safe_load_config
from procwarden.exceptions import (
    LockTimeoutError,
    PortConflictError,
    ServiceControlError,
    SignalError,
)
from procwarden.service import (
    FindReport,
    LifecycleState,
    RestartOutcome,
    ServiceController,
    ServiceLock,
    StartOutcome,
    StatusReport,
    StopOutcome,
)
from procwarden.utils import (
    SERVICE_TIMESTAMP_FORMAT,
    create_transcript_logger,
    level_from_string,
)

from ._shared import ExitCode, exit_with_error, exit_with_success, log_config_sources

ControllerFactory = Callable[[Config, Console | None], ServiceController]

USAGE = """\
procwarden-service: backing service control
Usage: procwarden-service {start|stop|restart|status|find|help} [--config PATH] [--quiet]

Commands:
  start    Start the service
  stop     Stop the service
  restart  Restart the service
  status   Display the service status
  find     Find the service process
  help     Display this help information"""

HELP_FLAGS = ("--help", "-h")

ConfigOption = Annotated[
    Path | None, Parameter(name="--config", help="Path to config file")
]
QuietOption = Annotated[
    bool, Parameter(help="Do not mirror the transcript to stdout")
]


def create_service_logger(config: Config, console: Console | None) -> FilteringBoundLogger:
    """Create the service transcript logger and record where config came from."""
    logger = create_transcript_logger(
        config.service.log_file,
        timestamp_format=SERVICE_TIMESTAMP_FORMAT,
        console=console if config.logging.console else None,
        log_level=level_from_string(config.logging.level.value),
        log_format=config.logging.format.value,  # type: ignore[arg-type]
    )
    log_config_sources(logger, config)
    return logger


def build_controller(config: Config, console: Console | None) -> ServiceController:
    """Build the ServiceController described by ``config``.

    Args:
        config: Loaded configuration.
        console: Console mirroring the transcript, or None for file-only.
    """
    settings = config.service
    return ServiceController(
        settings.to_target(),
        logger=create_service_logger(config, console),
        lock=ServiceLock(
            settings.name,
            settings.lock_directory(),
            timeout=settings.lock_timeout,
        ),
        shutdown_policy=settings.to_shutdown_policy(),
        settle_delay=settings.settle_delay,
    )


def render_status(report: StatusReport, console: Console) -> None:
    """Print port listeners and diagnostics for a status report."""
    if report.sockets:
        table = Table(title=f"{report.name} Port Information", title_justify="left")
        table.add_column("Proto")
        table.add_column("Local Address")
        table.add_column("State")
        table.add_column("PID", justify="right")
        for entry in report.sockets:
            table.add_row(
                entry.protocol,
                f"{entry.local_address}:{entry.local_port}",
                entry.status,
                str(entry.pid) if entry.pid is not None else "-",
            )
        console.print(table)

    if report.diagnostics:
        table = Table(
            title=f"{report.name} Information",
            title_justify="left",
            show_header=False,
        )
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in report.diagnostics.items():
            table.add_row(key, value)
        console.print(table)


def render_find(report: FindReport, name: str, port: int, console: Console) -> None:
    """Print the raw process and socket dump of a find report."""
    processes = Table(title=f"{name} Processes", title_justify="left")
    for column in ("PID", "PPID", "User", "Started", "Command"):
        processes.add_column(column, justify="right" if "PID" in column else "left")
    for entry in report.processes:
        started = (
            pendulum.from_timestamp(entry.create_time, tz=pendulum.local_timezone()).format(
                "YYYY-MM-DD HH:mm:ss"
            )
            if entry.create_time is not None
            else "-"
        )
        processes.add_row(
            str(entry.pid),
            str(entry.ppid) if entry.ppid is not None else "-",
            entry.username or "-",
            started,
            entry.cmdline,
        )
    console.print(processes)

    sockets = Table(title=f"Port {port} Usage", title_justify="left")
    for column in ("Proto", "Local Address", "Remote Address", "State", "PID"):
        sockets.add_column(column)
    for entry in report.sockets:
        sockets.add_row(
            entry.protocol,
            f"{entry.local_address}:{entry.local_port}",
            entry.remote_address or "-",
            entry.status,
            str(entry.pid) if entry.pid is not None else "-",
        )
    console.print(sockets)


def create_service_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    controller_factory: ControllerFactory = build_controller,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)

    app = App(
        name="procwarden-service",
        help="Start, stop, restart and inspect the backing service.",
        help_on_error=True,
        help_flags=(),
        console=console,
        error_console=error_console,
    )

    def _controller(config: Path | None, quiet: bool) -> ServiceController:  # noqa: FBT001
        try:
            loaded, _ = safe_load_config(config_path=config)
        except ConfigError as e:
            exit_with_error(str(e), ExitCode.CONFIG_ERROR, console=error_console)
        return controller_factory(loaded, None if quiet else console)

    def _run(action: Callable[[], ExitCode]) -> None:
        try:
            code = action()
        except PortConflictError as e:
            exit_with_error(str(e), ExitCode.PORT_CONFLICT, console=error_console)
        except LockTimeoutError as e:
            exit_with_error(str(e), ExitCode.LOCK_TIMEOUT, console=error_console)
        except SignalError as e:
            exit_with_error(str(e), ExitCode.STOP_FAILED, console=error_console)
        except ServiceControlError as e:
            exit_with_error(str(e), ExitCode.INTERNAL_ERROR, console=error_console)
        raise SystemExit(code)

    @app.default
    def _usage(  # pyright: ignore[reportUnusedFunction]
        *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    ) -> None:
        """Print usage for a help flag, or a missing or unknown command."""
        if tokens and tokens[0] in HELP_FLAGS:
            exit_with_success(USAGE, console=console)
        console.print(USAGE, highlight=False)
        raise SystemExit(ExitCode.USAGE_ERROR)

    @app.command(name="help")
    def _help() -> None:  # pyright: ignore[reportUnusedFunction]
        """Display this help information."""
        exit_with_success(USAGE, console=console)

    @app.command(name="start")
    def _start(  # pyright: ignore[reportUnusedFunction]
        *, config: ConfigOption = None, quiet: QuietOption = False
    ) -> None:
        """Start the service."""
        controller = _controller(config, quiet)

        def action() -> ExitCode:
            result = controller.start()
            if result.outcome is StartOutcome.START_FAILED:
                return ExitCode.START_FAILED
            return ExitCode.SUCCESS

        _run(action)

    @app.command(name="stop")
    def _stop(  # pyright: ignore[reportUnusedFunction]
        *, config: ConfigOption = None, quiet: QuietOption = False
    ) -> None:
        """Stop the service."""
        controller = _controller(config, quiet)

        def action() -> ExitCode:
            result = controller.stop()
            if result.outcome is StopOutcome.STOP_FAILED:
                return ExitCode.STOP_FAILED
            return ExitCode.SUCCESS

        _run(action)

    @app.command(name="restart")
    def _restart(  # pyright: ignore[reportUnusedFunction]
        *, config: ConfigOption = None, quiet: QuietOption = False
    ) -> None:
        """Restart the service."""
        controller = _controller(config, quiet)

        def action() -> ExitCode:
            result = controller.restart()
            match result.outcome:
                case RestartOutcome.RESTARTED:
                    return ExitCode.SUCCESS
                case RestartOutcome.STOP_FAILED:
                    return ExitCode.STOP_FAILED
                case _:
                    return ExitCode.START_FAILED

        _run(action)

    @app.command(name="status")
    def _status(  # pyright: ignore[reportUnusedFunction]
        *, config: ConfigOption = None, quiet: QuietOption = False
    ) -> None:
        """Display the service status."""
        controller = _controller(config, quiet)

        def action() -> ExitCode:
            report = controller.status()
            render_status(report, console)
            if report.state is LifecycleState.AMBIGUOUS:
                return ExitCode.PORT_CONFLICT
            return ExitCode.SUCCESS

        _run(action)

    @app.command(name="find")
    def _find(  # pyright: ignore[reportUnusedFunction]
        *, config: ConfigOption = None, quiet: QuietOption = False
    ) -> None:
        """Find the service process."""
        controller = _controller(config, quiet)
        target = controller.target

        def action() -> ExitCode:
            report = controller.find()
            render_find(report, target.display_name, target.listen_port, console)
            return ExitCode.SUCCESS

        _run(action)

    return app


def main() -> None:
    """Default entrypoint for the ``procwarden-service`` CLI."""
    app = create_service_app()
    app()
