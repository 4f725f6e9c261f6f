"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from session_recorder.api.admin import router as admin_router
from session_recorder.api.cron import router as cron_router
from session_recorder.api.recordings import router as recordings_router
from session_recorder.app_logging import configure_logging
from session_recorder.containers import AppContainer
from session_recorder.services.ingestion import ChunkValidationError
from session_recorder.services.merge_scheduler import MergeScheduler
from session_recorder.services.retrieval import InvalidKeyError
from session_recorder.services.storage import ObjectNotFoundError


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        scheduler: MergeScheduler | None = None
        interval = container.settings.merge_interval_seconds
        if interval:
            scheduler = MergeScheduler(container.reassembly_service, interval)
            await scheduler.start()
        app.state.merge_scheduler = scheduler
        yield
        if scheduler is not None:
            await scheduler.stop()
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(recordings_router)
    app.include_router(cron_router)
    app.include_router(admin_router)

    @app.exception_handler(ChunkValidationError)
    async def chunk_validation_error(
        request: Request, exc: ChunkValidationError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(InvalidKeyError)
    async def invalid_key_error(request: Request, exc: InvalidKeyError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ObjectNotFoundError)
    async def object_not_found(
        request: Request, exc: ObjectNotFoundError
    ) -> JSONResponse:
        logger.info("Requested object missing", extra={"storage_key": exc.key})
        return JSONResponse(status_code=404, content={"error": "File not found"})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app

