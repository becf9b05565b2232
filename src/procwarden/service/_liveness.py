"""Liveness signals for the backing service.

Two independent signals feed a liveness observation:
- SocketTable: listeners bound to the service port
- ProcessTable: processes whose command line matches the match token

``classify`` is the single place where the two signals are combined.
"""

import os
import socket
import subprocess
import sys
from collections.abc import Iterable, Sequence
from typing import Any, Protocol, final, runtime_checkable

import psutil

from procwarden.exceptions import SignalError

from ._models import (
    LifecycleState,
    LivenessObservation,
    ProcessEntry,
    ServiceTarget,
    SocketEntry,
)

_PROCESS_ATTRS = ["pid", "ppid", "name", "username", "cmdline", "status", "create_time"]


@runtime_checkable
class SocketTable(Protocol):
    """Read access to the OS socket table."""

    def listeners(self, port: int) -> tuple[SocketEntry, ...]:
        """Return every listening TCP socket and bound UDP socket on ``port``."""
        ...


@runtime_checkable
class ProcessTable(Protocol):
    """Read and signal access to the OS process table."""

    def scan(self, token: str) -> tuple[ProcessEntry, ...]:
        """Return live processes whose command line contains ``token``."""
        ...

    def terminate(self, pid: int) -> bool:
        """Send a graceful termination signal.

        Returns:
            False if the process no longer exists.

        Raises:
            SignalError: If the process cannot be signalled.
        """
        ...

    def kill(self, pid: int) -> bool:
        """Send a forced, non-ignorable termination signal.

        Returns:
            False if the process no longer exists.

        Raises:
            SignalError: If the process cannot be signalled.
        """
        ...


def classify(observation: LivenessObservation) -> LifecycleState:
    """Combine the port and process signals into a lifecycle state.

    A bound port is only ours when a matching process exists; a bound port
    without one is AMBIGUOUS and never counts as running.
    """
    if observation.port_bound:
        if observation.matching_pids:
            return LifecycleState.RUNNING
        return LifecycleState.AMBIGUOUS
    if observation.matching_pids:
        return LifecycleState.UNBOUND
    return LifecycleState.STOPPED


def sample(
    target: ServiceTarget,
    sockets: SocketTable,
    processes: ProcessTable,
) -> tuple[tuple[SocketEntry, ...], tuple[ProcessEntry, ...], LivenessObservation]:
    """Read both tables once for ``target``.

    Returns:
        The port listeners, the matching processes and the observation
        built from exactly those rows.
    """
    listeners = sockets.listeners(target.listen_port)
    entries = processes.scan(target.match_token)
    observation = LivenessObservation(
        port_bound=bool(listeners),
        matching_pids=frozenset(entry.pid for entry in entries),
    )
    return listeners, entries, observation


def observe(
    target: ServiceTarget,
    sockets: SocketTable,
    processes: ProcessTable,
) -> LivenessObservation:
    """Sample both signals for ``target``."""
    return sample(target, sockets, processes)[2]


# =============================================================================
# psutil implementations
# =============================================================================


def _protocol_name(family: int, kind: int) -> str:
    base = "udp" if kind == socket.SOCK_DGRAM else "tcp"
    return f"{base}6" if family == socket.AF_INET6 else base


def _is_listener(conn: Any, port: int) -> bool:  # noqa: ANN401
    if not conn.laddr or conn.laddr.port != port:
        return False
    if conn.type == socket.SOCK_STREAM:
        return conn.status == psutil.CONN_LISTEN
    # UDP has no LISTEN state; a bound, unconnected socket is listening
    return conn.type == socket.SOCK_DGRAM and not conn.raddr


def _socket_entry(conn: Any, pid: int | None) -> SocketEntry:  # noqa: ANN401
    remote = f"{conn.raddr.ip}:{conn.raddr.port}" if conn.raddr else None
    return SocketEntry(
        protocol=_protocol_name(conn.family, conn.type),
        local_address=conn.laddr.ip,
        local_port=conn.laddr.port,
        status=conn.status,
        remote_address=remote,
        pid=pid,
    )


@final
class PsutilSocketTable:
    """SocketTable backed by ``psutil.net_connections``.

    On platforms where the system-wide table needs privileges, falls back to
    the connections of every process the caller can inspect.
    """

    __slots__ = ()

    def listeners(self, port: int) -> tuple[SocketEntry, ...]:
        try:
            connections = [
                (conn, conn.pid) for conn in psutil.net_connections(kind="inet")
            ]
        except psutil.AccessDenied:
            connections = list(self._per_process_connections())

        return tuple(
            _socket_entry(conn, pid)
            for conn, pid in connections
            if _is_listener(conn, port)
        )

    @staticmethod
    def _per_process_connections() -> Iterable[tuple[Any, int]]:
        for proc in psutil.process_iter(["pid"]):
            try:
                for conn in proc.net_connections(kind="inet"):
                    yield conn, proc.pid
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue


@final
class PsutilProcessTable:
    """ProcessTable backed by ``psutil.process_iter``.

    Zombies and the calling process are never reported as matches.
    """

    __slots__ = ("_exclude",)

    def __init__(self, exclude: Iterable[int] | None = None) -> None:
        """Initialize the table.

        Args:
            exclude: PIDs never reported as matches. Defaults to this process.
        """
        self._exclude = frozenset(exclude if exclude is not None else (os.getpid(),))

    def scan(self, token: str) -> tuple[ProcessEntry, ...]:
        entries: list[ProcessEntry] = []
        for proc in psutil.process_iter(_PROCESS_ATTRS):
            info = proc.info
            if info["pid"] in self._exclude:
                continue
            if info["status"] == psutil.STATUS_ZOMBIE:
                continue

            name = info["name"] or ""
            cmdline = " ".join(info["cmdline"] or ()) or name
            if token not in cmdline:
                continue

            entries.append(
                ProcessEntry(
                    pid=info["pid"],
                    name=name,
                    cmdline=cmdline,
                    ppid=info["ppid"],
                    username=info["username"],
                    status=info["status"],
                    create_time=info["create_time"],
                )
            )
        return tuple(entries)

    def terminate(self, pid: int) -> bool:
        return self._signal(pid, force=False)

    def kill(self, pid: int) -> bool:
        return self._signal(pid, force=True)

    @staticmethod
    def _signal(pid: int, *, force: bool) -> bool:
        try:
            proc = psutil.Process(pid)
            if force:
                proc.kill()
            else:
                proc.terminate()
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied as e:
            action = "kill" if force else "terminate"
            msg = f"Permission denied trying to {action} process {pid}"
            raise SignalError(msg, pid=pid, cause=e) from e
        return True


def spawn_detached(argv: Sequence[str]) -> int:
    """Launch a background process detached from this session.

    Args:
        argv: Command and arguments to execute.

    Returns:
        The PID of the launched process.

    Raises:
        OSError: If the executable cannot be spawned.
    """
    popen_kwargs: dict[str, Any] = {}
    if sys.platform == "win32":
        popen_kwargs["creationflags"] = (
            subprocess.DETACHED_PROCESS | subprocess.CREATE_NO_WINDOW  # type: ignore[attr-defined]
        )
    else:
        popen_kwargs["start_new_session"] = True

    process = subprocess.Popen(  # noqa: S603
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        close_fds=True,
        **popen_kwargs,
    )
    return process.pid
