"""Bounded restart loop for a single worker process.

This module provides the Supervisor class that launches a worker, waits
for it to exit, and relaunches it until the restart budget is used up.
The worker is restarted on any exit, successful or not.
"""

import contextlib
import signal
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Final, final

import anyio
import anyio.abc
import pendulum
from pendulum import DateTime
from structlog.typing import FilteringBoundLogger

from procwarden.exceptions import LaunchFailedError

from ._models import (
    AttemptRecord,
    RestartPolicy,
    SupervisorOutcome,
    SupervisorResult,
    SupervisorState,
)

# Synthetic exit codes for workers that never started, shell conventions
EXIT_NOT_EXECUTABLE: Final = 126
EXIT_COMMAND_NOT_FOUND: Final = 127
EXIT_LAUNCH_FAILED: Final = 1


def launch_failure_code(error: OSError) -> int:
    """Map a launch error to the exit code recorded for the attempt."""
    if isinstance(error, FileNotFoundError):
        return EXIT_COMMAND_NOT_FOUND
    if isinstance(error, PermissionError):
        return EXIT_NOT_EXECUTABLE
    return EXIT_LAUNCH_FAILED


async def launch_worker(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> anyio.abc.Process:
    """Spawn the worker, inheriting the supervisor's stdio.

    Args:
        command: Command and arguments to execute.
        cwd: Working directory for the worker.
        env: Full environment for the worker. None inherits the current one.

    Returns:
        The running process.

    Raises:
        LaunchFailedError: If the executable cannot be spawned.
    """
    try:
        return await anyio.open_process(
            list(command),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdin=None,
            stdout=None,
            stderr=None,
        )
    except OSError as e:
        msg = f"Failed to launch {' '.join(command)}: {e}"
        raise LaunchFailedError(
            msg,
            command=tuple(command),
            exit_code=launch_failure_code(e),
            cause=e,
        ) from e


@final
class Supervisor:
    """Keeps one worker process alive under a bounded retry budget.

    Attempts never overlap: each launch waits for the previous worker to
    exit. Launch failures consume an attempt like any other exit. When the
    budget is exhausted the run ends; the supervisor never restarts itself.
    """

    __slots__ = (
        "_clock",
        "_command",
        "_cwd",
        "_env",
        "_handle_signals",
        "_logger",
        "_name",
        "_policy",
        "_shutdown_timeout",
        "_state",
    )

    def __init__(  # noqa: PLR0913
        self,
        command: Sequence[str],
        policy: RestartPolicy,
        *,
        logger: FilteringBoundLogger,
        name: str | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        shutdown_timeout: float = 5.0,
        handle_signals: bool = False,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        """Initialize the supervisor.

        Args:
            command: Worker command and arguments.
            policy: Restart budget and delay.
            logger: Transcript logger.
            name: Worker name used in log lines. Defaults to the executable.
            cwd: Working directory for the worker.
            env: Full worker environment. None inherits the current one.
            shutdown_timeout: Seconds a cancelled worker gets before SIGKILL.
            handle_signals: Stop supervising on SIGINT/SIGTERM.
            clock: Source of attempt timestamps.
        """
        if not command:
            msg = "Worker command must not be empty"
            raise ValueError(msg)

        self._command: tuple[str, ...] = tuple(command)
        self._policy = policy
        self._logger = logger
        self._name = name or Path(command[0]).name
        self._cwd = cwd
        self._env = env
        self._shutdown_timeout = shutdown_timeout
        self._handle_signals = handle_signals
        self._clock = clock
        self._state: SupervisorState | None = None

    @property
    def name(self) -> str:
        """Return the worker name used in log lines."""
        return self._name

    @property
    def policy(self) -> RestartPolicy:
        """Return the restart policy."""
        return self._policy

    @property
    def state(self) -> SupervisorState | None:
        """Return the state of the current or last run, if any."""
        return self._state

    async def run(self) -> SupervisorResult:
        """Run the restart loop until the budget is exhausted or cancelled.

        Returns:
            The terminal outcome and every completed attempt.
        """
        state = SupervisorState(budget=self._policy)
        self._state = state
        self._logger.info(
            f"Started monitoring {self._name} process",
            worker=self._name,
            max_attempts=self._policy.max_attempts,
            retry_delay=self._policy.retry_delay,
        )

        outcome = SupervisorOutcome.CANCELLED
        try:
            async with anyio.create_task_group() as tg:
                if self._handle_signals:
                    tg.start_soon(self._watch_signals, tg.cancel_scope)

                await self._restart_loop(state)
                outcome = SupervisorOutcome.RESTART_BUDGET_EXHAUSTED

                # Loop finished, stop the signal watcher
                tg.cancel_scope.cancel()
        except anyio.get_cancelled_exc_class():
            self._log_cancelled(state)
            raise

        if outcome is SupervisorOutcome.CANCELLED:
            self._log_cancelled(state)
        else:
            self._logger.info(
                f"Maximum restart count ({self._policy.max_attempts}) reached, "
                "no further restarts.",
                attempts=state.attempts_used,
            )

        return SupervisorResult(outcome=outcome, records=tuple(state.records))

    async def _restart_loop(self, state: SupervisorState) -> None:
        while not state.exhausted:
            record = state.begin(self._clock())
            self._logger.info(
                f"Starting {self._name} process (attempt #{record.attempt_number})",
                attempt=record.attempt_number,
            )

            exit_code = await self._run_attempt(state, record)
            self._logger.info(
                f"{self._name} process exited with status code: {exit_code}",
                attempt=record.attempt_number,
                exit_code=exit_code,
            )

            if state.exhausted:
                break

            delay = self._policy.retry_delay
            self._logger.info(f"Waiting {delay:g} seconds before restarting...")
            await anyio.sleep(delay)

    async def _run_attempt(self, state: SupervisorState, record: AttemptRecord) -> int:
        """Launch the worker once and wait for it to exit.

        Returns:
            The worker exit code, or a synthetic code if it could not launch.
        """
        try:
            process = await launch_worker(
                self._command,
                cwd=self._cwd,
                env=self._env,
            )
        except LaunchFailedError as e:
            self._logger.error(str(e), attempt=record.attempt_number)
            reason = str(e.cause) if e.cause is not None else str(e)
            state.finish(
                record.complete(e.exit_code, self._clock(), launch_error=reason)
            )
            return e.exit_code

        try:
            exit_code = await process.wait()
        except anyio.get_cancelled_exc_class():
            with anyio.CancelScope(shield=True):
                exit_code = await self._terminate(process)
            state.finish(record.complete(exit_code, self._clock()))
            raise

        state.finish(record.complete(exit_code, self._clock()))
        return exit_code

    async def _terminate(self, process: anyio.abc.Process) -> int:
        """Stop a worker with SIGTERM, escalating to SIGKILL after the timeout."""
        self._logger.warning(f"Stopping {self._name} process (pid {process.pid})")
        with contextlib.suppress(ProcessLookupError):
            process.terminate()

        with anyio.move_on_after(self._shutdown_timeout):
            return await process.wait()

        self._logger.warning(
            f"{self._name} process did not exit within "
            f"{self._shutdown_timeout:g} seconds, killing it"
        )
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        return await process.wait()

    async def _watch_signals(self, scope: anyio.CancelScope) -> None:
        with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
            async for signum in signals:
                self._logger.warning(
                    f"Received {signal.Signals(signum).name}, "
                    f"stopping supervision of {self._name}"
                )
                scope.cancel()
                return

    def _log_cancelled(self, state: SupervisorState) -> None:
        self._logger.warning(
            f"Supervision of {self._name} cancelled after "
            f"{state.attempts_used} attempt(s)",
            attempts=state.attempts_used,
        )
