"""Data models for backing service control.

This module defines the types shared by the liveness signals, the
shutdown state machine and the ServiceController:
- ServiceTarget / DiagnosticsQuery: Static service configuration
- ProcessEntry / SocketEntry: Raw process-table and socket-table rows
- LivenessObservation: A point-in-time liveness sample
- LifecycleState: Derived service state
- Start/Stop/Restart outcomes and results, StatusReport, FindReport
"""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class LifecycleState(StrEnum):
    """Derived service states.

    - STOPPED: Port free and no matching process
    - RUNNING: Port bound and at least one matching process
    - AMBIGUOUS: Port bound but no matching process (something else holds it)
    - UNBOUND: Matching process exists but the port is not bound
    - UNRESPONSIVE: Matching process did not exit after the graceful signal
    """

    STOPPED = "stopped"
    RUNNING = "running"
    AMBIGUOUS = "ambiguous"
    UNBOUND = "unbound"
    UNRESPONSIVE = "unresponsive"


class ShutdownPhase(StrEnum):
    """Phases of an escalating shutdown."""

    GRACEFUL_REQUESTED = "graceful_requested"
    POLLING = "polling"
    ESCALATING = "escalating"
    CLEARED = "cleared"
    FAILED = "failed"


class StartOutcome(StrEnum):
    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    START_FAILED = "start_failed"


class StopOutcome(StrEnum):
    STOPPED = "stopped"
    NOT_RUNNING = "not_running"
    STOP_FAILED = "stop_failed"


class RestartOutcome(StrEnum):
    RESTARTED = "restarted"
    STOP_FAILED = "stop_failed"
    START_FAILED = "start_failed"


@dataclass(frozen=True, slots=True)
class DiagnosticsQuery:
    """Optional query command for service-reported diagnostics.

    Arguments may contain ``{port}``, which is replaced with the listen port.

    Attributes:
        command: Query command and arguments (e.g. ``redis-cli info``).
        fields: Keys to keep from the ``key:value`` output. Empty keeps all.
        timeout_ms: Query timeout in milliseconds.
    """

    command: tuple[str, ...]
    fields: tuple[str, ...] = ()
    timeout_ms: int = 5000


@dataclass(frozen=True, slots=True)
class ServiceTarget:
    """Static configuration of the backing service.

    Attributes:
        display_name: Human-readable name, also keys the control lock.
        listen_port: TCP/UDP port the service binds.
        match_token: Substring matched against process command lines.
        start_command: Command and arguments that launch the service.
        config_path: Optional configuration file appended to the start command.
        diagnostics: Optional query for status diagnostics.
    """

    display_name: str
    listen_port: int
    match_token: str
    start_command: tuple[str, ...]
    config_path: Path | None = None
    diagnostics: DiagnosticsQuery | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.listen_port <= 65535:  # noqa: PLR2004
            msg = f"listen_port must be between 1 and 65535, got {self.listen_port}"
            raise ValueError(msg)
        if not self.match_token:
            msg = "match_token must not be empty"
            raise ValueError(msg)
        if not self.start_command:
            msg = "start_command must not be empty"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ProcessEntry:
    """A raw process-table row.

    Attributes:
        pid: Process ID.
        name: Process name.
        cmdline: Full command line joined with spaces.
        ppid: Parent process ID, if readable.
        username: Owning user, if readable.
        status: psutil status string, if readable.
        create_time: Start time as a Unix timestamp, if readable.
    """

    pid: int
    name: str
    cmdline: str
    ppid: int | None = None
    username: str | None = None
    status: str | None = None
    create_time: float | None = None


@dataclass(frozen=True, slots=True)
class SocketEntry:
    """A raw socket-table row.

    Attributes:
        protocol: "tcp", "tcp6", "udp" or "udp6".
        local_address: Local IP address.
        local_port: Local port.
        status: Connection status (e.g. "LISTEN"), "NONE" for UDP.
        remote_address: "ip:port" of the peer, if connected.
        pid: Owning process ID, if visible.
    """

    protocol: str
    local_address: str
    local_port: int
    status: str
    remote_address: str | None = None
    pid: int | None = None


@dataclass(frozen=True, slots=True)
class LivenessObservation:
    """A point-in-time liveness sample. Never cached across calls.

    Attributes:
        port_bound: Whether any listener is bound to the service port.
        matching_pids: Every PID whose command line matches the token.
    """

    port_bound: bool
    matching_pids: frozenset[int] = frozenset()

    @property
    def multi_match(self) -> bool:
        """Return True when more than one process matches the token."""
        return len(self.matching_pids) > 1


@dataclass(frozen=True, slots=True)
class StartResult:
    outcome: StartOutcome
    pids: frozenset[int] = frozenset()
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is not StartOutcome.START_FAILED


@dataclass(frozen=True, slots=True)
class StopResult:
    """Result of a stop request.

    Attributes:
        outcome: Stop outcome.
        pids: PIDs that were targeted.
        escalated: Whether the forced kill was needed.
        phase: Terminal shutdown phase, None when no shutdown ran.
        message: Human-readable summary.
    """

    outcome: StopOutcome
    pids: frozenset[int] = frozenset()
    escalated: bool = False
    phase: ShutdownPhase | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is not StopOutcome.STOP_FAILED


@dataclass(frozen=True, slots=True)
class RestartResult:
    outcome: RestartOutcome
    stop: StopResult | None = None
    start: StartResult | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is RestartOutcome.RESTARTED


@dataclass(frozen=True, slots=True)
class StatusReport:
    """Read-only snapshot of the service.

    Attributes:
        name: Service display name.
        port: Service listen port.
        state: Derived lifecycle state.
        observation: The liveness sample the state was derived from.
        sockets: Raw socket entries bound to the port.
        diagnostics: Service-reported fields, empty when unavailable.
    """

    name: str
    port: int
    state: LifecycleState
    observation: LivenessObservation
    sockets: tuple[SocketEntry, ...] = ()
    diagnostics: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FindReport:
    """Raw troubleshooting dump. Makes no liveness judgment.

    Attributes:
        processes: Process entries matching the token.
        sockets: Socket entries bound to the port.
    """

    processes: tuple[ProcessEntry, ...] = ()
    sockets: tuple[SocketEntry, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.processes and not self.sockets
