"""Tests for procwarden.service._liveness module."""

import os
import socket
from collections import namedtuple
from unittest.mock import MagicMock

import psutil
import pytest
from fakes import FakeHost
from pytest_mock import MockerFixture

from procwarden.exceptions import SignalError
from procwarden.service import (
    LifecycleState,
    LivenessObservation,
    ProcessTable,
    PsutilProcessTable,
    PsutilSocketTable,
    ServiceTarget,
    SocketTable,
    classify,
    observe,
    sample,
)

Addr = namedtuple("Addr", ["ip", "port"])
Conn = namedtuple("Conn", ["fd", "family", "type", "laddr", "raddr", "status", "pid"])


def tcp_listener(port: int, pid: int | None = 10) -> Conn:
    return Conn(
        -1, socket.AF_INET, socket.SOCK_STREAM, Addr("127.0.0.1", port), (), "LISTEN", pid
    )


class TestClassify:
    def test_port_and_pid_is_running(self) -> None:
        obs = LivenessObservation(port_bound=True, matching_pids=frozenset({42}))
        assert classify(obs) is LifecycleState.RUNNING

    def test_port_without_pid_is_ambiguous(self) -> None:
        obs = LivenessObservation(port_bound=True)
        assert classify(obs) is LifecycleState.AMBIGUOUS

    def test_pid_without_port_is_unbound(self) -> None:
        obs = LivenessObservation(port_bound=False, matching_pids=frozenset({42}))
        assert classify(obs) is LifecycleState.UNBOUND

    def test_neither_is_stopped(self) -> None:
        assert classify(LivenessObservation(port_bound=False)) is LifecycleState.STOPPED

    def test_multi_match(self) -> None:
        obs = LivenessObservation(port_bound=True, matching_pids=frozenset({1, 2}))
        assert obs.multi_match is True
        assert classify(obs) is LifecycleState.RUNNING


class TestObserve:
    def test_surfaces_all_matching_pids(
        self, host: FakeHost, target: ServiceTarget
    ) -> None:
        first = host.add_process("redis-server *:6379")
        second = host.add_process("redis-server *:6379")
        _ = host.add_process("python worker.py")

        obs = observe(target, host, host)

        assert obs.port_bound is True
        assert obs.matching_pids == frozenset({first, second})

    def test_foreign_listener_binds_port_without_pids(
        self, host: FakeHost, target: ServiceTarget
    ) -> None:
        host.foreign_listener = True

        obs = observe(target, host, host)

        assert obs == LivenessObservation(port_bound=True)

    def test_fake_host_satisfies_protocols(self, host: FakeHost) -> None:
        assert isinstance(host, SocketTable)
        assert isinstance(host, ProcessTable)


class TestSample:
    def test_observation_matches_returned_rows(
        self, host: FakeHost, target: ServiceTarget
    ) -> None:
        host.foreign_listener = True
        pid = host.add_process("redis-server *:6379")

        sockets, entries, obs = sample(target, host, host)

        assert [entry.pid for entry in sockets] == [None, pid]
        assert [entry.pid for entry in entries] == [pid]
        assert obs == LivenessObservation(port_bound=True, matching_pids=frozenset({pid}))
        assert obs == observe(target, host, host)

    def test_nothing_running(self, host: FakeHost, target: ServiceTarget) -> None:
        assert sample(target, host, host) == ((), (), LivenessObservation(port_bound=False))


class TestPsutilSocketTable:
    def test_reports_tcp_listener_on_port(self, mocker: MockerFixture) -> None:
        _ = mocker.patch(
            "psutil.net_connections",
            return_value=[tcp_listener(6379, pid=77), tcp_listener(8080)],
        )

        entries = PsutilSocketTable().listeners(6379)

        assert len(entries) == 1
        assert entries[0].protocol == "tcp"
        assert entries[0].local_port == 6379
        assert entries[0].pid == 77
        assert entries[0].status == "LISTEN"

    def test_ignores_established_connections(self, mocker: MockerFixture) -> None:
        established = Conn(
            -1,
            socket.AF_INET,
            socket.SOCK_STREAM,
            Addr("127.0.0.1", 6379),
            Addr("127.0.0.1", 50000),
            "ESTABLISHED",
            77,
        )
        _ = mocker.patch("psutil.net_connections", return_value=[established])

        assert PsutilSocketTable().listeners(6379) == ()

    def test_reports_bound_udp_socket(self, mocker: MockerFixture) -> None:
        udp = Conn(
            -1, socket.AF_INET6, socket.SOCK_DGRAM, Addr("::", 6379), (), "NONE", 5
        )
        _ = mocker.patch("psutil.net_connections", return_value=[udp])

        entries = PsutilSocketTable().listeners(6379)

        assert [e.protocol for e in entries] == ["udp6"]

    def test_falls_back_to_per_process_scan(self, mocker: MockerFixture) -> None:
        _ = mocker.patch("psutil.net_connections", side_effect=psutil.AccessDenied())
        proc = MagicMock()
        proc.pid = 99
        proc.net_connections.return_value = [tcp_listener(6379, pid=None)]
        denied = MagicMock()
        denied.net_connections.side_effect = psutil.AccessDenied()
        _ = mocker.patch("psutil.process_iter", return_value=[denied, proc])

        entries = PsutilSocketTable().listeners(6379)

        assert [e.pid for e in entries] == [99]


class TestPsutilProcessTable:
    def _proc(self, **info: object) -> MagicMock:
        proc = MagicMock()
        proc.info = {
            "pid": 100,
            "ppid": 1,
            "name": "redis-server",
            "username": "redis",
            "cmdline": ["redis-server", "*:6379"],
            "status": psutil.STATUS_SLEEPING,
            "create_time": 1_700_000_000.0,
        } | info
        return proc

    def test_matches_token_in_cmdline(self, mocker: MockerFixture) -> None:
        _ = mocker.patch(
            "psutil.process_iter",
            return_value=[
                self._proc(pid=100),
                self._proc(pid=101, name="python", cmdline=["python", "app.py"]),
            ],
        )

        entries = PsutilProcessTable(exclude=()).scan("redis-server")

        assert [e.pid for e in entries] == [100]
        assert entries[0].cmdline == "redis-server *:6379"

    def test_falls_back_to_name_without_cmdline(self, mocker: MockerFixture) -> None:
        _ = mocker.patch(
            "psutil.process_iter", return_value=[self._proc(pid=100, cmdline=None)]
        )

        entries = PsutilProcessTable(exclude=()).scan("redis-server")

        assert [e.cmdline for e in entries] == ["redis-server"]

    def test_skips_zombies_and_excluded(self, mocker: MockerFixture) -> None:
        _ = mocker.patch(
            "psutil.process_iter",
            return_value=[
                self._proc(pid=100, status=psutil.STATUS_ZOMBIE),
                self._proc(pid=os.getpid()),
            ],
        )

        assert PsutilProcessTable().scan("redis-server") == ()

    def test_terminate_vanished_process_returns_false(
        self, mocker: MockerFixture
    ) -> None:
        _ = mocker.patch("psutil.Process", side_effect=psutil.NoSuchProcess(100))

        assert PsutilProcessTable().terminate(100) is False

    def test_kill_sends_kill(self, mocker: MockerFixture) -> None:
        process = mocker.patch("psutil.Process")

        assert PsutilProcessTable().kill(100) is True
        process.return_value.kill.assert_called_once_with()
        process.return_value.terminate.assert_not_called()

    def test_access_denied_raises_signal_error(self, mocker: MockerFixture) -> None:
        process = mocker.patch("psutil.Process")
        process.return_value.terminate.side_effect = psutil.AccessDenied(100)

        with pytest.raises(SignalError, match="Permission denied") as exc_info:
            _ = PsutilProcessTable().terminate(100)

        assert exc_info.value.pid == 100
