"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from vintage_catalog.api.staging import router as staging_router
from vintage_catalog.app_logging import configure_logging
from vintage_catalog.containers import AppContainer
from vintage_catalog.domain.errors import (
    EmptyBatchError,
    IngestionFailedError,
    SessionInvariantError,
    StackEditError,
    StackNotFoundError,
)

_ERROR_STATUS: dict[type[Exception], int] = {
    StackNotFoundError: status.HTTP_404_NOT_FOUND,
    StackEditError: status.HTTP_400_BAD_REQUEST,
    SessionInvariantError: status.HTTP_400_BAD_REQUEST,
    EmptyBatchError: status.HTTP_400_BAD_REQUEST,
    IngestionFailedError: status.HTTP_502_BAD_GATEWAY,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(staging_router)

    async def handle_catalog_error(request: Request, exc: Exception) -> JSONResponse:
        status_code = next(
            code
            for error_type, code in _ERROR_STATUS.items()
            if isinstance(exc, error_type)
        )
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    for error_type in _ERROR_STATUS:
        app.add_exception_handler(error_type, handle_catalog_error)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
