"""Transfer job dataclass and its state machine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ferry.core.errors import FerryError, InvalidTransitionError


class TransferAction(str, Enum):
    COPY = "copy"
    MOVE = "move"
    DELETE = "delete"


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED})

_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.QUEUED: frozenset({JobState.RUNNING, JobState.CANCELLED}),
    JobState.RUNNING: frozenset({JobState.SUCCEEDED, JobState.FAILED}),
    JobState.SUCCEEDED: frozenset(),
    JobState.FAILED: frozenset(),
    JobState.CANCELLED: frozenset(),
}


@dataclass(slots=True)
class TransferJob:
    """One copy, move or delete operation.

    Owned and mutated by the transfer engine only; callers observe it
    through a :class:`~ferry.core.transfer.JobHandle` and notifications.
    """

    job_id: int
    action: TransferAction
    source: Path
    destination_dir: Path | None = None
    state: JobState = JobState.QUEUED
    error: FerryError | None = None
    bytes_done: int = 0
    bytes_total: int = 0

    @property
    def target(self) -> Path | None:
        """Final path of the transferred node, or None for deletes."""
        if self.destination_dir is None:
            return None
        return self.destination_dir / self.source.name

    @property
    def read_paths(self) -> tuple[Path, ...]:
        if self.action is TransferAction.COPY:
            return (self.source,)
        return ()

    @property
    def write_paths(self) -> tuple[Path, ...]:
        match self.action:
            case TransferAction.COPY:
                return (self.target,)
            case TransferAction.MOVE:
                return (self.source, self.target)
            case _:
                return (self.source,)

    def transition(self, new_state: JobState, error: FerryError | None = None) -> None:
        """Advance the state machine, rejecting backwards or skipped steps."""
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Job {self.job_id}: cannot go from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        self.error = error
