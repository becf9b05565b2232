"""Supervisor package for keeping one worker process alive.

Key Components:
    - RestartPolicy: Restart budget (max attempts, retry delay)
    - AttemptRecord: Immutable record of one launch attempt
    - SupervisorState: Per-run loop state
    - SupervisorResult: Terminal outcome of a run
    - Supervisor: The bounded restart loop

Example:
    >>> from procwarden.supervisor import RestartPolicy, Supervisor
    >>> supervisor = Supervisor(("cargo", "run"), RestartPolicy(), logger=logger)
    >>> result = await supervisor.run()  # Blocks until the budget is used
"""

from ._models import (
    AttemptRecord,
    RestartPolicy,
    SupervisorOutcome,
    SupervisorResult,
    SupervisorState,
)
from ._supervisor import (
    EXIT_COMMAND_NOT_FOUND,
    EXIT_LAUNCH_FAILED,
    EXIT_NOT_EXECUTABLE,
    Supervisor,
    launch_failure_code,
    launch_worker,
)

__all__ = [
    "EXIT_COMMAND_NOT_FOUND",
    "EXIT_LAUNCH_FAILED",
    "EXIT_NOT_EXECUTABLE",
    "AttemptRecord",
    "RestartPolicy",
    "Supervisor",
    "SupervisorOutcome",
    "SupervisorResult",
    "SupervisorState",
    "launch_failure_code",
    "launch_worker",
]
