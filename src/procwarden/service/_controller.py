"""Lifecycle control of the backing service.

The ServiceController answers start/stop/restart/status/find for one
port-bound, single-instance daemon. Every decision is made from a fresh
liveness observation; nothing about the service is remembered between
calls.
"""

import time
from collections.abc import Callable, Sequence
from typing import final

from structlog.typing import FilteringBoundLogger

from procwarden.exceptions import PortConflictError
from procwarden.utils import run_command

from ._diagnostics import CommandRunner, query_diagnostics
from ._lock import ServiceLock, default_lock_dir
from ._models import (
    FindReport,
    LifecycleState,
    LivenessObservation,
    RestartOutcome,
    RestartResult,
    ServiceTarget,
    StartOutcome,
    StartResult,
    StatusReport,
    StopOutcome,
    StopResult,
)
from ._liveness import (
    ProcessTable,
    PsutilProcessTable,
    PsutilSocketTable,
    SocketTable,
    classify,
    observe,
    sample,
    spawn_detached,
)
from ._shutdown import EscalatingShutdown, ShutdownPolicy


def format_pids(pids: frozenset[int]) -> str:
    return " ".join(str(pid) for pid in sorted(pids))


@final
class ServiceController:
    """Deterministic start/stop/restart/status/find for one backing service.

    ``start``, ``stop`` and ``restart`` hold the service lock for their whole
    duration. ``status`` and ``find`` are pure reads and take no lock.

    A port bound by a process that does not match the service token is a
    conflict: no mutating action ever signals or launches anything in that
    case.
    """

    __slots__ = (
        "_diagnostics_runner",
        "_lock",
        "_logger",
        "_processes",
        "_settle_delay",
        "_shutdown_policy",
        "_sleep",
        "_sockets",
        "_spawn",
        "_target",
    )

    def __init__(  # noqa: PLR0913
        self,
        target: ServiceTarget,
        *,
        logger: FilteringBoundLogger,
        sockets: SocketTable | None = None,
        processes: ProcessTable | None = None,
        spawn: Callable[[Sequence[str]], int] = spawn_detached,
        sleep: Callable[[float], None] = time.sleep,
        lock: ServiceLock | None = None,
        shutdown_policy: ShutdownPolicy | None = None,
        settle_delay: float = 1.0,
        diagnostics_runner: CommandRunner = run_command,
    ) -> None:
        """Initialize the controller.

        Args:
            target: The service being controlled.
            logger: Transcript logger.
            sockets: Socket table. Defaults to psutil.
            processes: Process table. Defaults to psutil.
            spawn: Launches a detached process and returns its PID.
            sleep: Blocking sleep, injectable for tests.
            lock: Control lock. Defaults to a lock in the user cache dir.
            shutdown_policy: Polling and escalation timing for stop.
            settle_delay: Seconds to wait after launching before checking.
            diagnostics_runner: Runs the status diagnostics query.
        """
        self._target = target
        self._logger = logger
        self._sockets: SocketTable = sockets if sockets is not None else PsutilSocketTable()
        self._processes: ProcessTable = (
            processes if processes is not None else PsutilProcessTable()
        )
        self._spawn = spawn
        self._sleep = sleep
        self._lock = (
            lock if lock is not None else ServiceLock(target.display_name, default_lock_dir())
        )
        self._shutdown_policy = shutdown_policy or ShutdownPolicy()
        self._settle_delay = settle_delay
        self._diagnostics_runner = diagnostics_runner

    @property
    def target(self) -> ServiceTarget:
        return self._target

    @property
    def lock(self) -> ServiceLock:
        return self._lock

    @property
    def _name(self) -> str:
        return self._target.display_name

    # -------------------------------------------------------------------------
    # Liveness
    # -------------------------------------------------------------------------

    def detect_liveness(self) -> LivenessObservation:
        """Take a fresh liveness observation of the service."""
        return observe(self._target, self._sockets, self._processes)

    def build_start_argv(self) -> tuple[str, ...]:
        """Return the launch command, with the config file when it exists."""
        argv = self._target.start_command
        config_path = self._target.config_path
        if config_path is None:
            return argv
        if config_path.is_file():
            return (*argv, str(config_path))

        self._logger.warning(
            f"{self._name} config file {config_path} not found, starting without it",
            config_path=str(config_path),
        )
        return argv

    # -------------------------------------------------------------------------
    # Mutating actions
    # -------------------------------------------------------------------------

    def start(self) -> StartResult:
        """Start the service unless it is already running.

        Raises:
            PortConflictError: If the port is held by a non-matching process.
            LockTimeoutError: If another control action holds the lock.
        """
        with self._lock:
            return self._start()

    def stop(self) -> StopResult:
        """Stop every matching service process, escalating if needed.

        Raises:
            PortConflictError: If the port is held by a non-matching process.
            LockTimeoutError: If another control action holds the lock.
            SignalError: If a process cannot be signalled.
        """
        with self._lock:
            return self._stop()

    def restart(self) -> RestartResult:
        """Stop then start the service under a single lock.

        Start is never attempted when stop fails.

        Raises:
            PortConflictError: If the port is held by a non-matching process.
            LockTimeoutError: If another control action holds the lock.
            SignalError: If a process cannot be signalled.
        """
        with self._lock:
            self._logger.info(f"Restarting {self._name} server...")

            observation = self.detect_liveness()
            if classify(observation) is LifecycleState.AMBIGUOUS:
                raise self._port_conflict(observation, action="restart")

            stop = self._stop()
            if not stop.ok:
                self._logger.error(f"Unable to stop {self._name} server, restart failed")
                return RestartResult(outcome=RestartOutcome.STOP_FAILED, stop=stop)

            start = self._start()
            if start.outcome is not StartOutcome.STARTED:
                self._logger.error(f"Unable to start {self._name} server, restart failed")
                return RestartResult(
                    outcome=RestartOutcome.START_FAILED, stop=stop, start=start
                )

            self._logger.info(f"{self._name} server successfully restarted")
            return RestartResult(outcome=RestartOutcome.RESTARTED, stop=stop, start=start)

    def _start(self) -> StartResult:
        observation = self.detect_liveness()
        state = classify(observation)
        pids = observation.matching_pids

        if state is LifecycleState.RUNNING:
            message = f"{self._name} is already running"
            self._logger.warning(message, pids=sorted(pids))
            return StartResult(StartOutcome.ALREADY_RUNNING, pids=pids, message=message)

        if state is LifecycleState.UNBOUND:
            message = (
                f"{self._name} process found (process ID: {format_pids(pids)}) but "
                f"port {self._target.listen_port} is not bound, not starting another"
            )
            self._logger.warning(message, pids=sorted(pids))
            return StartResult(StartOutcome.ALREADY_RUNNING, pids=pids, message=message)

        if state is LifecycleState.AMBIGUOUS:
            raise self._port_conflict(observation, action="start")

        self._logger.info(f"Starting {self._name} server...")
        argv = self.build_start_argv()
        try:
            spawned = self._spawn(argv)
        except OSError as e:
            message = f"Failed to start {self._name} server: {e}"
            self._logger.error(message, command=list(argv))
            return StartResult(StartOutcome.START_FAILED, message=message)

        self._logger.debug(f"Launched {' '.join(argv)}", pid=spawned)
        self._sleep(self._settle_delay)

        observation = self.detect_liveness()
        pids = observation.matching_pids
        if classify(observation) is LifecycleState.RUNNING:
            message = f"{self._name} server started, process ID: {format_pids(pids)}"
            self._logger.info(message, pids=sorted(pids))
            return StartResult(StartOutcome.STARTED, pids=pids, message=message)

        message = f"Failed to start {self._name} server"
        self._logger.error(
            message,
            state=classify(observation).value,
            pids=sorted(pids),
        )
        return StartResult(StartOutcome.START_FAILED, pids=pids, message=message)

    def _stop(self) -> StopResult:
        observation = self.detect_liveness()
        state = classify(observation)

        if state is LifecycleState.STOPPED:
            message = f"{self._name} server is not running"
            self._logger.warning(message)
            return StopResult(StopOutcome.NOT_RUNNING, message=message)

        if state is LifecycleState.AMBIGUOUS:
            raise self._port_conflict(observation, action="stop")

        pids = observation.matching_pids
        if observation.multi_match:
            self._warn_multi_match(pids)

        self._logger.info(f"Stopping {self._name} server (process ID: {format_pids(pids)})...")
        shutdown = EscalatingShutdown(
            observe=self.detect_liveness,
            processes=self._processes,
            policy=self._shutdown_policy,
            logger=self._logger,
            name=self._name,
            sleep=self._sleep,
        )
        report = shutdown.run(pids)

        if report.cleared:
            message = (
                f"{self._name} server forcefully stopped"
                if report.escalated
                else f"{self._name} server stopped"
            )
            self._logger.info(message, polls=report.polls, escalated=report.escalated)
            return StopResult(
                StopOutcome.STOPPED,
                pids=pids,
                escalated=report.escalated,
                phase=report.phase,
                message=message,
            )

        message = f"Unable to stop {self._name} server"
        self._logger.error(
            message,
            remaining=sorted(report.observation.matching_pids),
            port_bound=report.observation.port_bound,
        )
        return StopResult(
            StopOutcome.STOP_FAILED,
            pids=pids,
            escalated=report.escalated,
            phase=report.phase,
            message=message,
        )

    # -------------------------------------------------------------------------
    # Read-only actions
    # -------------------------------------------------------------------------

    def status(self) -> StatusReport:
        """Report the current state, port listeners and diagnostics."""
        sockets, _, observation = sample(self._target, self._sockets, self._processes)
        state = classify(observation)
        pids = format_pids(observation.matching_pids)
        port = self._target.listen_port

        diagnostics: dict[str, str] = {}
        match state:
            case LifecycleState.RUNNING:
                self._logger.info(f"{self._name} server is running, process ID: {pids}")
                if observation.multi_match:
                    self._warn_multi_match(observation.matching_pids)
                if self._target.diagnostics is not None:
                    diagnostics = query_diagnostics(
                        self._target.diagnostics,
                        port,
                        runner=self._diagnostics_runner,
                    )
            case LifecycleState.AMBIGUOUS:
                self._logger.warning(
                    f"Port {port} is in use by another process, "
                    f"no {self._name} process found"
                )
            case LifecycleState.UNBOUND:
                self._logger.warning(
                    f"{self._name} process found (process ID: {pids}) "
                    f"but port {port} is not bound"
                )
            case _:
                self._logger.warning(f"{self._name} server is not running")

        return StatusReport(
            name=self._name,
            port=port,
            state=state,
            observation=observation,
            sockets=sockets,
            diagnostics=diagnostics,
        )

    def find(self) -> FindReport:
        """Dump matching processes and port listeners without judging liveness."""
        self._logger.info(f"Finding {self._name} process...")
        sockets, processes, _ = sample(self._target, self._sockets, self._processes)

        if not processes:
            self._logger.warning(f"No running {self._name} process found")
        elif len(processes) > 1:
            self._warn_multi_match(frozenset(entry.pid for entry in processes))

        return FindReport(processes=processes, sockets=sockets)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _port_conflict(
        self, observation: LivenessObservation, *, action: str
    ) -> PortConflictError:
        port = self._target.listen_port
        message = f"Port {port} is in use by another process. Cannot {action} {self._name}."
        self._logger.error(message, port=port)
        return PortConflictError(
            message,
            service_name=self._name,
            port=port,
            observation=observation,
        )

    def _warn_multi_match(self, pids: frozenset[int]) -> None:
        self._logger.warning(
            f"Multiple {self._name} processes match '{self._target.match_token}': "
            f"{format_pids(pids)}",
            pids=sorted(pids),
        )
