"""procwarden exceptions."""

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from procwarden.service._models import LivenessObservation


class ProcwardenError(Exception):
    """Base exception for procwarden errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(ProcwardenError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration values fail validation.

    Attributes:
        errors: Human-readable validation messages, one per invalid field.
        source: Where the invalid values came from, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        errors: tuple[str, ...] = (),
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.errors: tuple[str, ...] = errors
        self.source: str | None = source


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(ProcwardenError):
    """Base exception for supervisor errors."""


class LaunchFailedError(SupervisorError):
    """Raised when the worker process cannot be spawned.

    The supervisor treats this like an exit with a synthetic non-zero code.

    Attributes:
        command: The command that failed to launch.
        exit_code: The synthetic exit code recorded for the attempt.
        cause: The underlying OS error.
    """

    def __init__(
        self,
        message: str,
        *,
        command: tuple[str, ...],
        exit_code: int,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and launch context.

        Args:
            message: Human-readable error message.
            command: The command that failed to launch.
            exit_code: The synthetic exit code recorded for the attempt.
            cause: The underlying OS error.
        """
        super().__init__(message)
        self.command: tuple[str, ...] = command
        self.exit_code: int = exit_code
        self.cause: Exception | None = cause


# =============================================================================
# Service Control Exceptions
# =============================================================================


class ServiceControlError(ProcwardenError):
    """Base exception for backing service control errors.

    Attributes:
        service_name: Display name of the service being controlled.
    """

    def __init__(self, message: str, *, service_name: str | None = None) -> None:
        """Initialize with error message and service context.

        Args:
            message: Human-readable error message.
            service_name: Display name of the service being controlled.
        """
        super().__init__(message)
        self.service_name: str | None = service_name


class PortConflictError(ServiceControlError):
    """Raised when the service port is held by an unidentifiable process.

    Attributes:
        port: The contested listen port.
        observation: The liveness observation that showed the conflict.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        port: int,
        observation: "LivenessObservation | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize with error message and port context.

        Args:
            message: Human-readable error message.
            service_name: Display name of the service being controlled.
            port: The contested listen port.
            observation: The liveness observation that showed the conflict.
        """
        super().__init__(message, service_name=service_name)
        self.port: int = port
        self.observation: "LivenessObservation | None" = observation  # noqa: UP037


class LockTimeoutError(ServiceControlError):
    """Raised when the per-service control lock cannot be acquired in time.

    Attributes:
        lock_path: Path of the lock file.
        timeout: Seconds waited before giving up.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        lock_path: Path,
        timeout: float,
    ) -> None:
        """Initialize with error message and lock context."""
        super().__init__(message, service_name=service_name)
        self.lock_path: Path = lock_path
        self.timeout: float = timeout


class SignalError(ServiceControlError):
    """Raised when a process cannot be signalled (e.g. permission denied).

    Attributes:
        pid: The process that could not be signalled.
        cause: The underlying exception.
    """

    def __init__(
        self,
        message: str,
        *,
        service_name: str | None = None,
        pid: int,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and process context."""
        super().__init__(message, service_name=service_name)
        self.pid: int = pid
        self.cause: Exception | None = cause
