"""Entry point for the part cache service."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from partcache.cleanup_task import ExpiredPartCleaner
from partcache.config import PARTCACHE_HOST, PARTCACHE_PORT, SWEEP_INTERVAL_SECONDS
from partcache.database import SqliteStorage
from partcache.exceptions import PartCacheException, StorageUnavailableError, ValidationError
from partcache.repositories.upload_part_repository import UploadPartRepository
from partcache.routes.part_routes import router as part_router

logger = setup_logging('partcache')


def create_app(
    database_path: Optional[str] = None,
    sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.time
) -> FastAPI:
    """
    Build the part cache app.

    The storage handle is opened when the app starts and closed when it
    stops; the repository and sweeper live on app.state for that lifetime.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Part cache service starting up...")

        storage = SqliteStorage(database_path)
        storage.open()
        repository = UploadPartRepository(storage, clock=clock)
        cleaner = ExpiredPartCleaner(repository, interval_seconds=sweep_interval_seconds)

        app.state.storage = storage
        app.state.upload_parts = repository
        app.state.cleaner = cleaner

        await cleaner.start()
        try:
            yield
        finally:
            logger.info("Part cache service shutting down...")
            await cleaner.stop()
            storage.close()

    app = FastAPI(
        title="Part Cache",
        description="Content-addressed cache of already uploaded media parts",
        version="1.0.0",
        lifespan=lifespan
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests and responses.
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(
            f"Request completed: {request.method} {request.url.path} "
            f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
        )

        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.warning(
            f"Invalid upload part: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "code": "INVALID_UPLOAD_PART"}
        )

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Storage unavailable: {exc} [request_id={request_id}] path={request.url.path}"
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc), "code": "STORAGE_UNAVAILABLE"}
        )

    @app.exception_handler(PartCacheException)
    async def part_cache_exception_handler(request: Request, exc: PartCacheException):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.error(
            f"Part cache exception: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc), "code": "INTERNAL_ERROR"}
        )

    app.include_router(part_router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "running", "service": "partcache"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=PARTCACHE_HOST, port=PARTCACHE_PORT)
