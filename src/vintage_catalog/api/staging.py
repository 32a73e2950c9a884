"""Staging session and ingestion run endpoints."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Header,
    HTTPException,
    Request,
    status,
)

from vintage_catalog.api.schemas import (
    AddPhotosRequest,
    AutoGroupRequest,
    CreateSessionRequest,
    IngestRequest,
    MergeRequest,
    MoveRequest,
    PhotoIndexRequest,
    PhotoUpload,
    ReorderRequest,
    RunView,
    SessionView,
    TaskView,
)
from vintage_catalog.domain.errors import ClusteringInputError, StackNotFoundError
from vintage_catalog.domain.photos import Photo, StagingSession, new_id
from vintage_catalog.services import staging
from vintage_catalog.services.clustering import summarize_clusters

if TYPE_CHECKING:
    from vintage_catalog.containers import AppContainer
    from vintage_catalog.domain.ingestion import BatchRun

logger = logging.getLogger(__name__)


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_api_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure requests include a valid API token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


router = APIRouter(tags=["staging"], dependencies=[Depends(require_api_token)])


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(body: CreateSessionRequest, request: Request) -> SessionView:
    """Start a staging session with one stack per photo."""
    container: AppContainer = request.app.state.container
    session = staging.start_session(body.owner_id, _decode_photos(body.photos))
    container.session_store.save_session(session)
    return SessionView.from_session(session)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request) -> SessionView:
    """Return the current stacks of a session."""
    return SessionView.from_session(_load_session(request, session_id))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_session(session_id: str, request: Request) -> None:
    """Drop a staging session without ingesting it."""
    container: AppContainer = request.app.state.container
    container.session_store.discard_session(session_id)


@router.post("/sessions/{session_id}/photos")
async def add_photos(
    session_id: str, body: AddPhotosRequest, request: Request
) -> SessionView:
    """Add more photos as single-photo stacks."""
    session = staging.add_photos(
        _load_session(request, session_id), _decode_photos(body.photos)
    )
    return _save(request, session)


@router.post("/sessions/{session_id}/auto-group")
async def auto_group(
    session_id: str, body: AutoGroupRequest, request: Request
) -> SessionView:
    """Regroup the session's photos by capture time."""
    container: AppContainer = request.app.state.container
    settings = container.settings
    session = _load_session(request, session_id)
    try:
        grouped = staging.auto_group(
            session,
            max_gap_seconds=body.max_gap_seconds or settings.cluster_max_gap_seconds,
            max_group_size=body.max_group_size or settings.cluster_max_group_size,
        )
    except ClusteringInputError as exc:
        return SessionView.from_session(session, message=str(exc))
    summary = summarize_clusters(grouped.stacks)
    return _save(request, grouped, message=summary.message)


@router.post("/sessions/{session_id}/merge")
async def merge_stacks(
    session_id: str, body: MergeRequest, request: Request
) -> SessionView:
    """Merge the selected stacks into one."""
    session = staging.merge_stacks(_load_session(request, session_id), body.stack_ids)
    return _save(request, session)


@router.post("/sessions/{session_id}/stacks/{stack_id}/split")
async def split_photo_out(
    session_id: str, stack_id: str, body: PhotoIndexRequest, request: Request
) -> SessionView:
    """Move a photo out of its stack."""
    session = staging.split_photo_out(
        _load_session(request, session_id), stack_id, body.photo_index
    )
    return _save(request, session)


@router.post("/sessions/{session_id}/stacks/{stack_id}/explode")
async def explode_stack(
    session_id: str, stack_id: str, request: Request
) -> SessionView:
    """Break a stack into single-photo stacks."""
    session = staging.explode_stack(_load_session(request, session_id), stack_id)
    return _save(request, session)


@router.post("/sessions/{session_id}/stacks/{stack_id}/reorder")
async def reorder_within_stack(
    session_id: str, stack_id: str, body: ReorderRequest, request: Request
) -> SessionView:
    """Move a photo inside its stack."""
    session = staging.reorder_within_stack(
        _load_session(request, session_id), stack_id, body.from_index, body.to_index
    )
    return _save(request, session)


@router.post("/sessions/{session_id}/stacks/{stack_id}/move")
async def move_stack(
    session_id: str, stack_id: str, body: MoveRequest, request: Request
) -> SessionView:
    """Reorder a stack or drop it onto another stack."""
    session = staging.move_stack(
        _load_session(request, session_id),
        stack_id,
        body.target_index,
        onto_stack=body.onto_stack,
    )
    return _save(request, session)


@router.delete("/sessions/{session_id}/stacks/{stack_id}")
async def remove_stack(session_id: str, stack_id: str, request: Request) -> SessionView:
    """Delete a stack and its photos."""
    session = staging.remove_stack(_load_session(request, session_id), stack_id)
    return _save(request, session)


@router.delete("/sessions/{session_id}/stacks/{stack_id}/photos/{photo_index}")
async def remove_photo(
    session_id: str, stack_id: str, photo_index: int, request: Request
) -> SessionView:
    """Delete one photo from a stack."""
    session = staging.remove_photo(
        _load_session(request, session_id), stack_id, photo_index
    )
    return _save(request, session)


@router.post("/sessions/{session_id}/ingest", status_code=status.HTTP_202_ACCEPTED)
async def ingest_session(
    session_id: str,
    body: IngestRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> RunView:
    """Start ingesting every stack of the session in the background."""
    container: AppContainer = request.app.state.container
    session = _load_session(request, session_id)
    batch = container.ingestion_service.create_run(
        session.owner_id, list(session.stacks), analyze=body.analyze, notes=body.notes
    )
    container.session_store.save_run(batch)
    container.session_store.discard_session(session_id)
    background_tasks.add_task(container.ingestion_service.run, batch)
    return RunView.from_run(batch)


@router.post("/sessions/{session_id}/stacks/{stack_id}/ingest")
async def ingest_stack(
    session_id: str, stack_id: str, body: IngestRequest, request: Request
) -> TaskView:
    """Ingest a single stack now and report its outcome."""
    container: AppContainer = request.app.state.container
    session = _load_session(request, session_id)
    task = await container.ingestion_service.ingest_single(
        session.owner_id,
        session.stack(stack_id),
        analyze=body.analyze,
        notes=body.notes,
    )
    # The session may have been edited or discarded while the stack was ingested.
    current = container.session_store.get_session(session_id)
    if current is not None:
        try:
            _save(request, staging.remove_stack(current, stack_id))
        except StackNotFoundError:
            logger.info(
                "Stack %s left session %s during ingestion", stack_id, session_id
            )
    return TaskView.from_task(task)


@router.get("/runs/{run_id}")
async def get_run(run_id: str, request: Request) -> RunView:
    """Return progress and tallies of a run."""
    return RunView.from_run(_load_run(request, run_id))


@router.post("/runs/{run_id}/cancel")
async def cancel_run(run_id: str, request: Request) -> RunView:
    """Stop a run before its next task."""
    batch = _load_run(request, run_id)
    batch.cancel()
    return RunView.from_run(batch)


@router.post("/runs/{run_id}/retry", status_code=status.HTTP_202_ACCEPTED)
async def retry_run(
    run_id: str, request: Request, background_tasks: BackgroundTasks
) -> RunView:
    """Retry the failed tasks of a finished run."""
    container: AppContainer = request.app.state.container
    batch = _load_run(request, run_id)
    if not batch.is_finished:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Run is still in progress"
        )
    background_tasks.add_task(container.ingestion_service.retry_failed, batch)
    return RunView.from_run(batch)


@router.post("/runs/{run_id}/discard-failed")
async def discard_failed(run_id: str, request: Request) -> dict[str, int]:
    """Delete placeholder records of failed tasks."""
    container: AppContainer = request.app.state.container
    batch = _load_run(request, run_id)
    return {"discarded": container.ingestion_service.discard_failed(batch)}


def _decode_photos(uploads: list[PhotoUpload]) -> list[Photo]:
    photos = []
    for upload in uploads:
        try:
            data = base64.b64decode(upload.data_base64, validate=True)
        except binascii.Error as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Photo data must be base64 encoded",
            ) from exc
        photos.append(
            Photo(
                id=new_id(),
                data=data,
                captured_at=upload.captured_at,
                filename=upload.filename,
            )
        )
    return photos


def _load_session(request: Request, session_id: str) -> StagingSession:
    container: AppContainer = request.app.state.container
    session = container.session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return session


def _load_run(request: Request, run_id: str) -> BatchRun:
    container: AppContainer = request.app.state.container
    batch = container.session_store.get_run(run_id)
    if batch is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return batch


def _save(
    request: Request, session: StagingSession, message: str | None = None
) -> SessionView:
    container: AppContainer = request.app.state.container
    container.session_store.save_session(session)
    return SessionView.from_session(session, message=message)
