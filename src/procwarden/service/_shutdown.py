"""Escalating shutdown of the backing service.

Stopping runs as a small state machine::

    GRACEFUL_REQUESTED -> POLLING -> CLEARED
                                  -> ESCALATING -> CLEARED
                                                -> FAILED

The poll count is bounded, so the grace window is always
``poll_interval * max_polls``. Sleeping goes through an injected callable
so the machine can be driven without wall-clock waits.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import final

from structlog.typing import FilteringBoundLogger

from ._models import LifecycleState, LivenessObservation, ShutdownPhase
from ._liveness import ProcessTable, classify


@dataclass(frozen=True, slots=True)
class ShutdownPolicy:
    """Timing of an escalating shutdown.

    Attributes:
        poll_interval: Seconds between liveness polls.
        max_polls: Number of polls before escalating (at least 1).
        kill_settle: Seconds to wait after the forced kill before the final
            check. Defaults to ``poll_interval``.
    """

    poll_interval: float = 1.0
    max_polls: int = 5
    kill_settle: float | None = None

    def __post_init__(self) -> None:
        if self.max_polls < 1:
            msg = f"max_polls must be at least 1, got {self.max_polls}"
            raise ValueError(msg)
        if self.poll_interval < 0:
            msg = f"poll_interval must not be negative, got {self.poll_interval}"
            raise ValueError(msg)

    @property
    def grace_window(self) -> float:
        """Return the total time allotted to the graceful stop."""
        return self.poll_interval * self.max_polls

    @property
    def settle_after_kill(self) -> float:
        return self.poll_interval if self.kill_settle is None else self.kill_settle


@dataclass(frozen=True, slots=True)
class ShutdownReport:
    """Outcome of an escalating shutdown.

    Attributes:
        phase: Terminal phase, CLEARED or FAILED.
        escalated: Whether the forced kill was sent.
        polls: Liveness polls made during the grace window.
        terminated: PIDs that received the graceful signal.
        killed: PIDs that received the forced kill.
        observation: The last liveness observation.
    """

    phase: ShutdownPhase
    escalated: bool
    polls: int
    terminated: frozenset[int]
    killed: frozenset[int]
    observation: LivenessObservation

    @property
    def cleared(self) -> bool:
        return self.phase is ShutdownPhase.CLEARED


@final
class EscalatingShutdown:
    """Stops a set of processes: graceful signal, bounded polling, one forced kill.

    Liveness only clears once every matching process is gone and the port
    is free.
    """

    __slots__ = (
        "_history",
        "_logger",
        "_name",
        "_observe",
        "_policy",
        "_processes",
        "_sleep",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        observe: Callable[[], LivenessObservation],
        processes: ProcessTable,
        policy: ShutdownPolicy,
        logger: FilteringBoundLogger,
        name: str = "service",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the shutdown.

        Args:
            observe: Takes a fresh liveness observation.
            processes: Process table used to signal PIDs.
            policy: Poll interval, poll count and kill settle delay.
            logger: Transcript logger.
            name: Service name for log lines.
            sleep: Blocking sleep, injectable for tests.
        """
        self._observe = observe
        self._processes = processes
        self._policy = policy
        self._logger = logger
        self._name = name
        self._sleep = sleep
        self._history: list[ShutdownPhase] = []

    @property
    def phase(self) -> ShutdownPhase | None:
        """Return the current phase, or None before ``run``."""
        return self._history[-1] if self._history else None

    @property
    def history(self) -> tuple[ShutdownPhase, ...]:
        """Return every phase entered, in order."""
        return tuple(self._history)

    def run(self, pids: frozenset[int]) -> ShutdownReport:
        """Stop ``pids`` and report the terminal phase.

        Raises:
            SignalError: If a process cannot be signalled.
        """
        self._enter(ShutdownPhase.GRACEFUL_REQUESTED)
        terminated = frozenset(pid for pid in sorted(pids) if self._processes.terminate(pid))

        self._enter(ShutdownPhase.POLLING)
        observation = self._observe()
        for poll in range(1, self._policy.max_polls + 1):
            if poll > 1:
                observation = self._observe()
            if classify(observation) is LifecycleState.STOPPED:
                return self._finish(
                    ShutdownPhase.CLEARED,
                    escalated=False,
                    polls=poll,
                    terminated=terminated,
                    observation=observation,
                )
            self._sleep(self._policy.poll_interval)

        self._enter(ShutdownPhase.ESCALATING)
        self._logger.warning(
            f"{self._name} server not responding in time, "
            "attempting forced termination...",
            state=LifecycleState.UNRESPONSIVE.value,
            grace_window=self._policy.grace_window,
        )

        # Kill whatever still matches, not just the PIDs signalled first
        remaining = self._observe().matching_pids
        killed = frozenset(pid for pid in sorted(remaining) if self._processes.kill(pid))
        self._sleep(self._policy.settle_after_kill)

        observation = self._observe()
        phase = (
            ShutdownPhase.CLEARED
            if classify(observation) is LifecycleState.STOPPED
            else ShutdownPhase.FAILED
        )
        return self._finish(
            phase,
            escalated=True,
            polls=self._policy.max_polls,
            terminated=terminated,
            killed=killed,
            observation=observation,
        )

    def _enter(self, phase: ShutdownPhase) -> None:
        self._history.append(phase)
        self._logger.debug(f"{self._name} shutdown phase: {phase.value}", phase=phase.value)

    def _finish(  # noqa: PLR0913
        self,
        phase: ShutdownPhase,
        *,
        escalated: bool,
        polls: int,
        terminated: frozenset[int],
        observation: LivenessObservation,
        killed: frozenset[int] = frozenset(),
    ) -> ShutdownReport:
        self._enter(phase)
        return ShutdownReport(
            phase=phase,
            escalated=escalated,
            polls=polls,
            terminated=terminated,
            killed=killed,
            observation=observation,
        )
