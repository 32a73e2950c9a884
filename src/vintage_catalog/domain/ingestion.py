"""Domain models for batch ingestion runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from vintage_catalog.domain.analysis import ItemAnalysis
from vintage_catalog.domain.errors import InvalidTransitionError
from vintage_catalog.domain.photos import Stack, new_id
from vintage_catalog.domain.records import AssetRef


class TaskState(StrEnum):
    """Lifecycle states of an ingestion task."""

    PENDING = "PENDING"
    CREATING_RECORD = "CREATING_RECORD"
    UPLOADING_ASSETS = "UPLOADING_ASSETS"
    ANALYZING = "ANALYZING"
    FINALIZING = "FINALIZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED})

# ANALYZING never fails a task; FINALIZING may, when the record write fails.
_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset(
        {TaskState.CREATING_RECORD, TaskState.UPLOADING_ASSETS}
    ),
    TaskState.CREATING_RECORD: frozenset(
        {TaskState.UPLOADING_ASSETS, TaskState.FAILED}
    ),
    TaskState.UPLOADING_ASSETS: frozenset(
        {TaskState.ANALYZING, TaskState.FINALIZING, TaskState.FAILED}
    ),
    TaskState.ANALYZING: frozenset({TaskState.FINALIZING}),
    TaskState.FINALIZING: frozenset({TaskState.COMPLETED, TaskState.FAILED}),
    TaskState.COMPLETED: frozenset(),
    TaskState.FAILED: frozenset({TaskState.PENDING}),
}


@dataclass
class IngestionTask:
    """One stack moving through the ingestion state machine."""

    stack: Stack
    state: TaskState = TaskState.PENDING
    record_id: UUID | None = None
    asset_refs: list[AssetRef] = field(default_factory=list)
    analysis: ItemAnalysis | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, state: TaskState) -> None:
        """Move to the next state, rejecting unreachable transitions."""
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot move task from {self.state} to {state}"
            )
        self.state = state

    def fail(self, message: str) -> None:
        self.advance(TaskState.FAILED)
        self.error = message

    def reset_for_retry(self) -> None:
        """Return a failed task to PENDING, keeping its placeholder record id."""
        self.advance(TaskState.PENDING)
        self.asset_refs = []
        self.analysis = None
        self.warnings = []
        self.error = None


@dataclass(frozen=True)
class BatchProgress:
    """Snapshot published after each task reaches a terminal state."""

    run_id: str
    succeeded: int
    failed: int
    total: int
    task_index: int
    task_state: TaskState


@dataclass
class BatchRun:
    """One execution of the ingestion pipeline over ordered stacks."""

    owner_id: str
    tasks: list[IngestionTask]
    analyze: bool = False
    notes: str = ""
    id: str = field(default_factory=new_id)
    succeeded_count: int = 0
    failed_count: int = 0
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @classmethod
    def for_stacks(
        cls, owner_id: str, stacks: list[Stack], analyze: bool = False, notes: str = ""
    ) -> "BatchRun":
        """Create a run with one pending task per stack."""
        return cls(
            owner_id=owner_id,
            tasks=[IngestionTask(stack=stack) for stack in stacks],
            analyze=analyze,
            notes=notes,
        )

    @property
    def total(self) -> int:
        return len(self.tasks)

    @property
    def skipped_count(self) -> int:
        return sum(1 for task in self.tasks if task.state == TaskState.PENDING)

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    def cancel(self) -> None:
        """Ask the pipeline to stop before the next task."""
        self.cancelled = True
