"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from clipcomposer.api.routes import files, renders, uploads
from clipcomposer.api.websockets import progress
from clipcomposer.common.errors import (
    ComposerError,
    InvalidDurationError,
    MissingClipMatchError,
    NotFoundError,
    UnsupportedMediaError,
)
from clipcomposer.mongodb.client import close_mongodb_client, get_mongodb_client
from clipcomposer.mongodb.config import mongodb_enabled
from clipcomposer.mongodb.migrations import ensure_schema
from clipcomposer.pipeline.progress_reporter import connection_manager
from clipcomposer.pipeline.providers import job_registry
from clipcomposer.staging.providers import sweep_loop, temp_resource_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize and cleanup resources."""
    # Startup
    if mongodb_enabled():
        try:
            version = await ensure_schema(get_mongodb_client().database)
            logger.info("Render job schema at version %d", version)
        except PyMongoError as e:
            logger.warning("Failed to migrate render job schema: %s", e)

    sweeper = sweep_loop()
    sweeper.start()

    yield

    # Shutdown
    await job_registry().abort_all()
    await connection_manager.close_all()
    await sweeper.stop()
    await temp_resource_store().release_all()
    if mongodb_enabled():
        close_mongodb_client()


app = FastAPI(
    title="Clip Composer API",
    description="Clip staging, timeline composition and render jobs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Render-Job-Id"],
)


@app.exception_handler(ComposerError)
async def composer_error_handler(request: Request, exc: ComposerError) -> JSONResponse:
    """Map pipeline errors raised inside request handlers to HTTP errors."""
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, (InvalidDurationError, MissingClipMatchError, UnsupportedMediaError)):
        status_code = 400
    else:
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
        status_code = 500
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.include_router(uploads.router, prefix="/api/uploads", tags=["uploads"])
app.include_router(renders.router, prefix="/api/renders", tags=["renders"])
app.include_router(files.router, prefix="/api/files", tags=["files"])
app.include_router(progress.router, prefix="/ws", tags=["websocket"])


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    health = {"status": "healthy"}
    if mongodb_enabled():
        health["mongodb"] = "up" if await get_mongodb_client().ping() else "down"
    return health
