"""Shared test fixtures for procwarden tests."""

from pathlib import Path

import pytest
from fakes import FakeHost, Transcript
from rich.console import Console

from procwarden.service import (
    DiagnosticsQuery,
    ServiceController,
    ServiceLock,
    ServiceTarget,
    ShutdownPolicy,
)
from procwarden.utils import SERVICE_TIMESTAMP_FORMAT


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )


@pytest.fixture
def host() -> FakeHost:
    return FakeHost(port=6379)


@pytest.fixture
def target() -> ServiceTarget:
    return ServiceTarget(
        display_name="Redis",
        listen_port=6379,
        match_token="redis-server",
        start_command=("redis-server",),
        diagnostics=DiagnosticsQuery(
            command=("redis-cli", "-p", "{port}", "info"),
            fields=("redis_version", "connected_clients"),
        ),
    )


@pytest.fixture
def service_transcript(tmp_path: Path) -> Transcript:
    return Transcript.create(
        tmp_path / "service.log", timestamp_format=SERVICE_TIMESTAMP_FORMAT
    )


@pytest.fixture
def service_lock(tmp_path: Path) -> ServiceLock:
    return ServiceLock("Redis", tmp_path / "locks", timeout=1.0)


@pytest.fixture
def controller(
    target: ServiceTarget,
    host: FakeHost,
    service_transcript: Transcript,
    service_lock: ServiceLock,
) -> ServiceController:
    """A controller wired to the fake host, with instant sleeps."""
    return ServiceController(
        target,
        logger=service_transcript.logger,
        sockets=host,
        processes=host,
        spawn=host.spawn,
        sleep=host.sleep,
        lock=service_lock,
        shutdown_policy=ShutdownPolicy(poll_interval=1.0, max_polls=5),
        settle_delay=1.0,
    )
