"""Maintenance API: fulltext reindexing of the document repository.

Run with:
    uvicorn reindexer.main:app

Extraction jobs are executed by a separate ARQ worker:
    arq reindexer.worker.WorkerSettings
"""

import logging
from contextlib import asynccontextmanager

from arq.connections import create_pool
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

from .config import settings
from .routers import reindex_router
from .services.reindex_ports import ReindexError
from .worker import parse_redis_url

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the ARQ pool the reindex endpoint dispatches extraction jobs to."""
    app.state.arq_pool = None
    try:
        app.state.arq_pool = await create_pool(parse_redis_url(settings.redis_url))
        logger.info("ARQ job queue connected at %s", settings.redis_url)
    except Exception as e:
        if settings.redis_required:
            logger.error("Job queue unreachable and REDIS_REQUIRED=true: %s", e)
            raise RuntimeError(f"Fulltext job queue is required but unreachable: {e}") from e
        logger.warning("Job queue unreachable, /reindexFulltext will answer 503: %s", e)

    yield

    if app.state.arq_pool is not None:
        await app.state.arq_pool.close()
        logger.info("ARQ job queue closed")


app = FastAPI(
    title="Fulltext Reindex API",
    description="Repository maintenance: batch fulltext reindexing",
    version=API_VERSION,
    lifespan=lifespan,
)


# Pool exhaustion: tell the client to retry rather than fail
@app.exception_handler(SQLAlchemyTimeoutError)
async def db_pool_exhausted_handler(request: Request, exc: SQLAlchemyTimeoutError):
    logger.warning("Database pool exhausted on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database busy, retry later", "retry_after": 5},
        headers={"Retry-After": "5"},
    )


@app.exception_handler(ReindexError)
async def reindex_error_handler(request: Request, exc: ReindexError):
    """Reindex failures that escaped the run loop (the loop handles batch errors)."""
    logger.error("Reindex failed on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Reindex failed: {type(exc).__name__}"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions with their traceback."""
    logger.error(
        "Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


app.include_router(reindex_router)


@app.get("/")
async def root():
    return {"service": "Fulltext Reindex API", "version": API_VERSION}


@app.get("/health")
async def health_check(request: Request):
    """Liveness plus job queue availability."""
    pool = getattr(request.app.state, "arq_pool", None)
    return {
        "status": "healthy",
        "job_queue": "connected" if pool is not None else "unavailable",
        "repository": settings.repository_name,
    }
