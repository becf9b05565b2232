"""Console scripts for procwarden."""

from ._service import build_controller, create_service_app, create_service_logger
from ._service import main as service_main
from ._shared import (
    ExitCode,
    exit_with_error,
    exit_with_success,
    get_error_console,
    log_config_sources,
)
from ._supervise import build_supervisor, create_supervise_app
from ._supervise import main as supervise_main

__all__ = [
    "ExitCode",
    "build_controller",
    "build_supervisor",
    "create_service_app",
    "create_service_logger",
    "create_supervise_app",
    "exit_with_error",
    "exit_with_success",
    "get_error_console",
    "log_config_sources",
    "service_main",
    "supervise_main",
]
