"""Service package for controlling one port-bound backing service.

Key Components:
    - ServiceTarget: Static description of the service
    - classify: Combines port and process signals into a LifecycleState
    - EscalatingShutdown: Graceful signal, bounded polling, one forced kill
    - ServiceLock: Per-service inter-process control lock
    - ServiceController: start/stop/restart/status/find

Example:
    >>> from procwarden.service import ServiceController, ServiceTarget
    >>> target = ServiceTarget("Redis", 6379, "redis-server", ("redis-server",))
    >>> controller = ServiceController(target, logger=logger)
    >>> controller.start().outcome
    <StartOutcome.STARTED: 'started'>
"""

from ._controller import ServiceController, format_pids
from ._diagnostics import CommandRunner, parse_key_values, query_diagnostics
from ._lock import DEFAULT_LOCK_TIMEOUT, ServiceLock, default_lock_dir, lock_slug
from ._models import (
    DiagnosticsQuery,
    FindReport,
    LifecycleState,
    LivenessObservation,
    ProcessEntry,
    RestartOutcome,
    RestartResult,
    ServiceTarget,
    ShutdownPhase,
    SocketEntry,
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
from ._shutdown import EscalatingShutdown, ShutdownPolicy, ShutdownReport

__all__ = [
    "DEFAULT_LOCK_TIMEOUT",
    "CommandRunner",
    "DiagnosticsQuery",
    "EscalatingShutdown",
    "FindReport",
    "LifecycleState",
    "LivenessObservation",
    "ProcessEntry",
    "ProcessTable",
    "PsutilProcessTable",
    "PsutilSocketTable",
    "RestartOutcome",
    "RestartResult",
    "ServiceController",
    "ServiceLock",
    "ServiceTarget",
    "ShutdownPhase",
    "ShutdownPolicy",
    "ShutdownReport",
    "SocketEntry",
    "SocketTable",
    "StartOutcome",
    "StartResult",
    "StatusReport",
    "StopOutcome",
    "StopResult",
    "classify",
    "default_lock_dir",
    "format_pids",
    "lock_slug",
    "observe",
    "parse_key_values",
    "query_diagnostics",
    "sample",
    "spawn_detached",
]
