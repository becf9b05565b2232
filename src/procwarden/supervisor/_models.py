"""Data models for the worker supervisor.

This module defines the core data types for the restart loop:
- RestartPolicy: Immutable restart budget and delay
- AttemptRecord: Immutable record of one launch attempt
- SupervisorState: Per-run mutable loop state
- SupervisorOutcome / SupervisorResult: Terminal outcome of a run
"""

import dataclasses
from dataclasses import dataclass, field
from enum import StrEnum

from pendulum import DateTime


class SupervisorOutcome(StrEnum):
    """Terminal outcomes of a supervisor run.

    - RESTART_BUDGET_EXHAUSTED: Every attempt in the budget has been used
    - CANCELLED: The run was interrupted before the budget was used up
    """

    RESTART_BUDGET_EXHAUSTED = "restart_budget_exhausted"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class RestartPolicy:
    """Restart budget for a supervisor run.

    Attributes:
        max_attempts: Maximum number of launch attempts (at least 1).
        retry_delay: Seconds to wait between attempts (not negative).
    """

    max_attempts: int = 100
    retry_delay: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.retry_delay < 0:
            msg = f"retry_delay must not be negative, got {self.retry_delay}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class AttemptRecord:
    """Immutable record of a single worker launch attempt.

    A record with ``exit_code`` and ``exited_at`` unset describes the
    attempt currently in flight. Completion produces a new record.

    Attributes:
        attempt_number: 1-based attempt index.
        started_at: When the attempt was launched.
        exit_code: Worker exit code (negative for a signal), or None while running.
        exited_at: When the worker exited, or None while running.
        launch_error: Reason the worker could not be launched, if it could not.
    """

    attempt_number: int
    started_at: DateTime
    exit_code: int | None = None
    exited_at: DateTime | None = None
    launch_error: str | None = None

    @property
    def completed(self) -> bool:
        """Return True once the attempt has an exit code."""
        return self.exit_code is not None

    def complete(
        self,
        exit_code: int,
        exited_at: DateTime,
        *,
        launch_error: str | None = None,
    ) -> "AttemptRecord":  # noqa: UP037
        """Return a completed copy of this record."""
        return dataclasses.replace(
            self,
            exit_code=exit_code,
            exited_at=exited_at,
            launch_error=launch_error,
        )


@dataclass(slots=True)
class SupervisorState:
    """Mutable state of one supervisor run.

    Attributes:
        budget: The restart policy for this run.
        attempts_used: Number of attempts launched so far.
        current_attempt: The attempt in flight, if any.
        records: Completed attempts in launch order.
    """

    budget: RestartPolicy
    attempts_used: int = 0
    current_attempt: AttemptRecord | None = None
    records: list[AttemptRecord] = field(default_factory=list)

    @property
    def exhausted(self) -> bool:
        """Return True when no attempts remain in the budget."""
        return self.attempts_used >= self.budget.max_attempts

    def begin(self, started_at: DateTime) -> AttemptRecord:
        """Start the next attempt and return its in-flight record."""
        self.attempts_used += 1
        self.current_attempt = AttemptRecord(
            attempt_number=self.attempts_used,
            started_at=started_at,
        )
        return self.current_attempt

    def finish(self, record: AttemptRecord) -> None:
        """Append a completed record and clear the in-flight attempt."""
        self.records.append(record)
        self.current_attempt = None


@dataclass(frozen=True, slots=True)
class SupervisorResult:
    """Terminal result of a supervisor run.

    Attributes:
        outcome: Why the run ended.
        records: Every completed attempt, in order.
    """

    outcome: SupervisorOutcome
    records: tuple[AttemptRecord, ...] = ()

    @property
    def attempts(self) -> int:
        """Return the number of completed attempts."""
        return len(self.records)
