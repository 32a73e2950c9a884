"""Request and response models for the HTTP API."""

from pydantic import BaseModel, Field

from vintage_catalog.domain.ingestion import BatchRun, IngestionTask
from vintage_catalog.domain.photos import StagingSession


class PhotoUpload(BaseModel):
    """A photo sent as base64 with its capture time."""

    data_base64: str
    captured_at: float
    filename: str | None = None


class CreateSessionRequest(BaseModel):
    owner_id: str
    photos: list[PhotoUpload] = Field(min_length=1)


class AddPhotosRequest(BaseModel):
    photos: list[PhotoUpload] = Field(min_length=1)


class AutoGroupRequest(BaseModel):
    max_gap_seconds: float | None = Field(default=None, gt=0)
    max_group_size: int | None = Field(default=None, ge=1)


class MergeRequest(BaseModel):
    stack_ids: list[str]


class PhotoIndexRequest(BaseModel):
    photo_index: int


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class MoveRequest(BaseModel):
    target_index: int
    onto_stack: bool = False


class IngestRequest(BaseModel):
    analyze: bool = False
    notes: str = ""


class StackView(BaseModel):
    id: str
    size: int
    hero_photo_id: str
    photo_ids: list[str]


class SessionView(BaseModel):
    id: str
    owner_id: str
    photo_count: int
    original_count: int
    removed_count: int
    stacks: list[StackView]
    message: str | None = None

    @classmethod
    def from_session(
        cls, session: StagingSession, message: str | None = None
    ) -> "SessionView":
        return cls(
            id=session.id,
            owner_id=session.owner_id,
            photo_count=session.photo_count,
            original_count=session.original_count,
            removed_count=session.removed_count,
            stacks=[
                StackView(
                    id=stack.id,
                    size=stack.size,
                    hero_photo_id=stack.hero.id,
                    photo_ids=[photo.id for photo in stack.photos],
                )
                for stack in session.stacks
            ],
            message=message,
        )


class TaskView(BaseModel):
    stack_id: str
    state: str
    record_id: str | None
    asset_urls: list[str]
    warnings: list[str]
    error: str | None
    terminal: bool

    @classmethod
    def from_task(cls, task: IngestionTask) -> "TaskView":
        return cls(
            stack_id=task.stack.id,
            state=task.state.value,
            record_id=str(task.record_id) if task.record_id else None,
            asset_urls=[ref.url for ref in task.asset_refs],
            warnings=list(task.warnings),
            error=task.error,
            terminal=task.is_terminal,
        )


class RunView(BaseModel):
    id: str
    total: int
    succeeded: int
    failed: int
    skipped: int
    cancelled: bool
    finished: bool
    tasks: list[TaskView]

    @classmethod
    def from_run(cls, batch: BatchRun) -> "RunView":
        return cls(
            id=batch.id,
            total=batch.total,
            succeeded=batch.succeeded_count,
            failed=batch.failed_count,
            skipped=batch.skipped_count,
            cancelled=batch.cancelled,
            finished=batch.is_finished,
            tasks=[TaskView.from_task(task) for task in batch.tasks],
        )
