"""Batch ingestion of staged stacks into the catalog."""

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from vintage_catalog.domain.analysis import ItemAnalysis
from vintage_catalog.domain.errors import (
    EmptyBatchError,
    IngestionFailedError,
    RecordStoreError,
    UploadError,
)
from vintage_catalog.domain.ingestion import (
    BatchProgress,
    BatchRun,
    IngestionTask,
    TaskState,
)
from vintage_catalog.domain.photos import Stack
from vintage_catalog.domain.records import AssetRef, CatalogRecord
from vintage_catalog.services.analysis import AnalysisService
from vintage_catalog.services.images import ImageCompressor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


class AssetStorage(Protocol):
    """Interface for storing uploaded photos."""

    async def upload(
        self, data: bytes, owner_id: str, record_id: UUID, index: int
    ) -> AssetRef:
        """Store one photo and return its reference, raising UploadError."""


class CatalogRepository(Protocol):
    """Persistence interface for catalog records."""

    def create(self, owner_id: str) -> UUID:
        """Create a placeholder record and return its id."""

    def update(self, record_id: UUID, fields: dict[str, object]) -> None:
        """Apply a partial update to a record."""

    def delete(self, record_id: UUID) -> None:
        """Delete a record."""

    def get(self, record_id: UUID) -> CatalogRecord | None:
        """Return a record by id, if present."""

    def list_records(self, owner_id: str) -> list[CatalogRecord]:
        """Return all records of an owner, newest first."""

    def subscribe(self, owner_id: str) -> AsyncIterator[list[CatalogRecord]]:
        """Yield the owner's record set whenever it changes."""


@dataclass
class BatchIngestionService:
    """Drives ingestion runs one task at a time."""

    storage: AssetStorage
    records: CatalogRepository
    analysis_service: AnalysisService
    compressor: ImageCompressor | None = None
    upload_timeout_seconds: float = 30.0
    analysis_timeout_seconds: float = 120.0

    def create_run(
        self,
        owner_id: str,
        stacks: list[Stack],
        analyze: bool = False,
        notes: str = "",
    ) -> BatchRun:
        """Build a run for the given stacks, rejecting an empty batch."""
        if not stacks:
            raise EmptyBatchError("No stacks to ingest")
        return BatchRun.for_stacks(owner_id, stacks, analyze=analyze, notes=notes)

    async def run(
        self, batch: BatchRun, progress: ProgressCallback | None = None
    ) -> BatchRun:
        """Process every pending task of a run in order.

        Task failures are recorded on the run rather than raised. Cancellation
        is honoured between tasks only.
        """
        if not batch.tasks:
            raise EmptyBatchError("No stacks to ingest")
        batch.started_at = batch.started_at or datetime.now(tz=UTC)
        batch.finished_at = None
        queue = deque(
            (index, task)
            for index, task in enumerate(batch.tasks)
            if task.state == TaskState.PENDING
        )
        logger.info("Starting run %s with %d tasks", batch.id, len(queue))
        try:
            while queue:
                if batch.cancelled:
                    logger.info(
                        "Run %s cancelled with %d tasks left", batch.id, len(queue)
                    )
                    break
                index, task = queue.popleft()
                try:
                    await self._process(batch, task)
                except Exception as exc:
                    logger.exception(
                        "Unexpected failure in task %d of run %s", index, batch.id
                    )
                    task.fail(f"Unexpected error: {exc}")
                    self._mark_failed(task)
                if task.state == TaskState.COMPLETED:
                    batch.succeeded_count += 1
                else:
                    batch.failed_count += 1
                if progress is not None:
                    progress(
                        BatchProgress(
                            run_id=batch.id,
                            succeeded=batch.succeeded_count,
                            failed=batch.failed_count,
                            total=batch.total,
                            task_index=index,
                            task_state=task.state,
                        )
                    )
        finally:
            batch.finished_at = datetime.now(tz=UTC)
        logger.info(
            "Run %s finished: %d succeeded, %d failed, %d skipped",
            batch.id,
            batch.succeeded_count,
            batch.failed_count,
            batch.skipped_count,
        )
        return batch

    async def ingest_single(
        self, owner_id: str, stack: Stack, analyze: bool = True, notes: str = ""
    ) -> IngestionTask:
        """Ingest one stack and raise IngestionFailedError if it fails."""
        batch = self.create_run(owner_id, [stack], analyze=analyze, notes=notes)
        await self.run(batch)
        task = batch.tasks[0]
        if task.state == TaskState.FAILED:
            raise IngestionFailedError(task.error or "Ingestion failed")
        return task

    async def retry_failed(
        self, batch: BatchRun, progress: ProgressCallback | None = None
    ) -> BatchRun:
        """Re-run failed tasks of a finished run against their placeholders."""
        failed = [task for task in batch.tasks if task.state == TaskState.FAILED]
        for task in failed:
            task.reset_for_retry()
        batch.failed_count -= len(failed)
        batch.cancelled = False
        return await self.run(batch, progress)

    def discard_failed(self, batch: BatchRun) -> int:
        """Delete placeholder records left behind by failed tasks."""
        discarded = 0
        for task in batch.tasks:
            if task.state != TaskState.FAILED or task.record_id is None:
                continue
            self.records.delete(task.record_id)
            task.record_id = None
            discarded += 1
        return discarded

    async def _process(self, batch: BatchRun, task: IngestionTask) -> None:
        if task.record_id is None:
            task.advance(TaskState.CREATING_RECORD)
            try:
                task.record_id = self.records.create(batch.owner_id)
            except RecordStoreError as exc:
                logger.exception("Could not create placeholder record")
                task.fail(str(exc))
                return

        task.advance(TaskState.UPLOADING_ASSETS)
        uploaded: list[bytes] = []
        try:
            for index, photo in enumerate(task.stack.photos):
                data = photo.data
                if self.compressor is not None:
                    data = self.compressor.compress(data)
                ref = await self._upload(data, batch.owner_id, task.record_id, index)
                task.asset_refs.append(ref)
                uploaded.append(data)
        except UploadError as exc:
            logger.exception("Upload failed for record %s", task.record_id)
            task.fail(str(exc))
            self._mark_failed(task)
            return

        analysis: ItemAnalysis | None = None
        if batch.analyze:
            task.advance(TaskState.ANALYZING)
            analysis = await self._analyze(task, uploaded, batch.notes)

        task.advance(TaskState.FINALIZING)
        task.analysis = analysis
        fields = _final_fields(task.asset_refs, analysis, analyzed=batch.analyze)
        try:
            self.records.update(task.record_id, fields)
        except RecordStoreError as exc:
            logger.exception("Could not finalize record %s", task.record_id)
            task.fail(str(exc))
            self._mark_failed(task)
            return
        task.advance(TaskState.COMPLETED)
        logger.info(
            "Record %s completed with %d assets", task.record_id, len(task.asset_refs)
        )

    async def _upload(
        self, data: bytes, owner_id: str, record_id: UUID, index: int
    ) -> AssetRef:
        try:
            return await asyncio.wait_for(
                self.storage.upload(data, owner_id, record_id, index),
                timeout=self.upload_timeout_seconds,
            )
        except TimeoutError as exc:
            raise UploadError(
                f"Upload of photo {index} timed out after "
                f"{self.upload_timeout_seconds}s"
            ) from exc

    async def _analyze(
        self, task: IngestionTask, images: list[bytes], notes: str
    ) -> ItemAnalysis:
        try:
            return await asyncio.wait_for(
                self.analysis_service.analyze(images, notes, {}),
                timeout=self.analysis_timeout_seconds,
            )
        except TimeoutError:
            warning = f"Analysis timed out after {self.analysis_timeout_seconds}s"
        except Exception as exc:
            # Analysis never fails a task.
            warning = f"Analysis failed: {exc}"
        logger.warning("Record %s: %s", task.record_id, warning)
        task.warnings.append(warning)
        return ItemAnalysis.empty()

    def _mark_failed(self, task: IngestionTask) -> None:
        """Flag the placeholder so it can be retried or discarded later."""
        if task.record_id is None:
            return
        try:
            self.records.update(
                task.record_id, {"ingest_state": "failed", "ingest_error": task.error}
            )
        except Exception:
            logger.exception("Could not mark record %s as failed", task.record_id)


def _final_fields(
    asset_refs: list[AssetRef], analysis: ItemAnalysis | None, analyzed: bool
) -> dict[str, object]:
    urls = [ref.url for ref in asset_refs]
    fields: dict[str, object] = {
        **(analysis or ItemAnalysis.empty()).to_record_fields(),
        "images": urls,
        "image": urls[0] if urls else None,
        "ingest_state": "completed",
        "ingest_error": None,
    }
    if analyzed:
        fields["analyzed_at"] = datetime.now(tz=UTC).isoformat()
    return fields
