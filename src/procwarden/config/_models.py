# pyright: reportExplicitAny=false, reportAny=false
"""Configuration models with typed access.

Sections:
- LoggingConfig: ``[logging]`` transcript level and format
- SupervisorConfig: ``[supervisor]`` worker command and restart budget
- ServiceConfig: ``[service]`` backing service target, timing and lock
"""

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from procwarden.exceptions import ConfigValidationError
from procwarden.service import DiagnosticsQuery, ServiceTarget, ShutdownPolicy, default_lock_dir
from procwarden.supervisor import RestartPolicy

from ._defaults import DEFAULT_CONFIG
from ._loader import deep_merge, parse_env_vars, read_toml_file


class LogLevel(StrEnum):
    """Log level threshold values, most verbose first."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Transcript output format values."""

    LINE = "line"
    JSON = "json"
    TEXT = "text"


class ConfigSourceName(StrEnum):
    """Configuration source names, highest precedence first."""

    CLI = "cli"
    ENV = "env"
    PROJECT = "project"
    USER = "user"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class ConfigSource:
    """Represents a configuration source.

    Attributes:
        name: The source type identifier.
        path: Path to the config file, or None for non-file sources.
        exists: Whether the source exists.
        values: Configuration values from this source.
    """

    name: ConfigSourceName
    path: Path | None
    exists: bool
    values: dict[str, Any]


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Transcript line format.
        console: Mirror transcript lines to standard output.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.LINE
    console: bool = True


class SupervisorConfig(BaseModel):
    """Supervisor configuration section.

    Attributes:
        name: Worker name used in transcript lines.
        command: Worker command and arguments.
        log_file: Transcript file, empty for console only.
        max_attempts: Total launch attempts.
        retry_delay: Seconds between an exit and the next launch.
        shutdown_timeout: Seconds a cancelled worker gets before it is killed.
        cwd: Worker working directory, empty for the current one.
        env: Extra environment variables for the worker.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(default="sol_new", min_length=1)
    command: tuple[str, ...] = Field(default=("cargo", "run"), min_length=1)
    log_file: str = "sol_new_restart.log"
    max_attempts: int = Field(default=100, ge=1)
    retry_delay: float = Field(default=2.0, ge=0)
    shutdown_timeout: float = Field(default=5.0, ge=0)
    cwd: str = ""
    env: dict[str, str] = Field(default_factory=dict)

    def to_policy(self) -> RestartPolicy:
        return RestartPolicy(max_attempts=self.max_attempts, retry_delay=self.retry_delay)

    def worker_cwd(self) -> Path | None:
        return Path(self.cwd) if self.cwd else None


class ServiceConfig(BaseModel):
    """Backing service configuration section.

    Attributes:
        name: Display name, also keys the control lock.
        port: Listen port.
        match_token: Substring matched against process command lines.
        start_command: Command and arguments that launch the service.
        config_path: Service config file appended when it exists. Empty disables.
        log_file: Transcript file, empty for console only.
        settle_delay: Seconds to wait after launching before checking.
        poll_interval: Seconds between liveness polls while stopping.
        max_polls: Polls before the forced kill.
        kill_settle: Seconds to wait after the forced kill. Negative uses
            ``poll_interval``.
        lock_timeout: Seconds to wait for the control lock.
        lock_dir: Lock file directory, empty for the user cache directory.
        info_command: Diagnostics query; ``{port}`` is substituted. Empty disables.
        info_fields: Diagnostics keys to keep.
        info_timeout_ms: Diagnostics query timeout.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(default="Redis", min_length=1)
    port: int = Field(default=6379, ge=1, le=65535)
    match_token: str = Field(default="redis-server", min_length=1)
    start_command: tuple[str, ...] = Field(default=("redis-server",), min_length=1)
    config_path: str = "/etc/redis/redis.conf"
    log_file: str = "redis_control.log"
    settle_delay: float = Field(default=1.0, ge=0)
    poll_interval: float = Field(default=1.0, ge=0)
    max_polls: int = Field(default=5, ge=1)
    kill_settle: float = -1.0
    lock_timeout: float = Field(default=30.0, ge=0)
    lock_dir: str = ""
    info_command: tuple[str, ...] = ("redis-cli", "-p", "{port}", "info")
    info_fields: tuple[str, ...] = (
        "redis_version",
        "uptime_in_days",
        "connected_clients",
        "used_memory_human",
        "total_connections_received",
    )
    info_timeout_ms: int = Field(default=5000, ge=1)

    def to_target(self) -> ServiceTarget:
        diagnostics = (
            DiagnosticsQuery(
                command=self.info_command,
                fields=self.info_fields,
                timeout_ms=self.info_timeout_ms,
            )
            if self.info_command
            else None
        )
        return ServiceTarget(
            display_name=self.name,
            listen_port=self.port,
            match_token=self.match_token,
            start_command=self.start_command,
            config_path=Path(self.config_path) if self.config_path else None,
            diagnostics=diagnostics,
        )

    def to_shutdown_policy(self) -> ShutdownPolicy:
        return ShutdownPolicy(
            poll_interval=self.poll_interval,
            max_polls=self.max_polls,
            kill_settle=self.kill_settle if self.kill_settle >= 0 else None,
        )

    def lock_directory(self) -> Path:
        return Path(self.lock_dir) if self.lock_dir else default_lock_dir()


def _format_errors(error: ValidationError) -> tuple[str, ...]:
    return tuple(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in error.errors()
    )


class Config(BaseModel):
    """Configuration container with typed access.

    Use the factory methods rather than the constructor.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)

    _sources: tuple[ConfigSource, ...] = PrivateAttr(default=())

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        source: str | None = None,
    ) -> Self:
        """Create configuration from a dictionary merged over the defaults.

        Raises:
            ConfigValidationError: If a value fails validation.
        """
        merged = deep_merge(DEFAULT_CONFIG, data)
        try:
            return cls.model_validate(merged)
        except ValidationError as e:
            errors = _format_errors(e)
            where = f" in {source}" if source else ""
            msg = f"Invalid configuration{where}: " + "; ".join(errors)
            raise ConfigValidationError(msg, errors=errors, source=source) from e

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load configuration from a specific file merged over the defaults.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigLoadError: If the file cannot be parsed.
            ConfigValidationError: If validation fails.
        """
        data = read_toml_file(path)
        config = cls.from_dict(data, source=str(path))
        config._sources = (
            ConfigSource(name=ConfigSourceName.PROJECT, path=path, exists=True, values=data),
        )
        return config

    @classmethod
    def load(
        cls,
        *,
        cwd: Path | None = None,
        include_env: bool = True,
        cli_overrides: dict[str, Any] | None = None,
    ) -> Self:
        """Load merged configuration from all sources.

        Precedence, lowest first: defaults, user file, project file,
        environment, CLI overrides.

        Raises:
            ConfigLoadError: If a config file cannot be parsed.
            ConfigValidationError: If the merged config fails validation.
        """
        # Deferred import to avoid circular dependency
        from procwarden.config._discovery import discover_sources  # noqa: PLC0415

        sources = discover_sources(
            cwd,
            include_env=include_env,
            cli_overrides=cli_overrides,
        )

        merged: dict[str, Any] = {}
        loaded_sources: list[ConfigSource] = []
        for source in reversed(sources):
            values: dict[str, Any] = {}
            if source.name in (ConfigSourceName.DEFAULT, ConfigSourceName.CLI):
                values = source.values
            elif source.name == ConfigSourceName.ENV:
                values = parse_env_vars()
            elif source.path and source.exists:
                values = read_toml_file(source.path)

            loaded_sources.append(
                ConfigSource(
                    name=source.name,
                    path=source.path,
                    exists=source.exists,
                    values=values,
                )
            )
            if values:
                merged = deep_merge(merged, values)

        config = cls.from_dict(merged)
        config._sources = tuple(reversed(loaded_sources))
        return config

    @property
    def sources(self) -> list[ConfigSource]:
        """Return the sources that contributed, highest precedence first."""
        return list(self._sources)
