"""
OutletSync backend: offline-first data access for outlets, sales and dashboard
statistics.

Reads are answered cache-first from a local SQLite replica; writes made while
offline are queued durably and replayed on reconnect.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.config import Settings
from core.exceptions import NoCachedData, PersistenceError, RemoteFetchError, SyncError
from core.health import get_health_status, set_startup_time
from core.logging import configure_logging, get_logger
from routers import data, sync

# Initialize settings and logging
settings = Settings()
configure_logging(settings)
logger = get_logger(__name__)

# Suppress noisy loggers
logging.getLogger("uvicorn").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("watchfiles").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info("Starting OutletSync services")
    set_startup_time()

    await container.database().startup()
    online = await container.probe().startup()
    await container.queue().start()

    # Serve whatever the replica holds before the first request
    loaded = await container.orchestrator().preload()
    logger.info("Services started successfully", online=online, cached=loaded)

    # Drain writes left over from the previous run
    if online:
        await container.queue().process_queue()

    yield

    # Shutdown
    await container.queue().stop()
    await container.executor().close()
    await container.api_client().close()
    await container.probe().shutdown()
    await container.database().shutdown()
    logger.info("Services shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="OutletSync",
    version="1.0.0",
    description="Offline-first data access layer with durable write queue",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


# ============================================================================
# Error mapping
# ============================================================================

@app.exception_handler(NoCachedData)
async def no_cached_data_handler(request: Request, exc: NoCachedData):
    return ORJSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"success": False, "error": str(exc), "scope": exc.scope}
    )


@app.exception_handler(RemoteFetchError)
async def remote_fetch_error_handler(request: Request, exc: RemoteFetchError):
    return ORJSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"success": False, "error": str(exc), "entity": exc.entity}
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Local storage failure", operation=exc.operation, error=str(exc))
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc)}
    )


@app.exception_handler(SyncError)
async def sync_error_handler(request: Request, exc: SyncError):
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc)}
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": str(exc)}
    )


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return ORJSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )


app.add_middleware(CatchAllExceptionsMiddleware)

# Add CORS middleware (must be AFTER exception middleware)
logger.info("Configuring CORS middleware",
            origins_count=len(settings.cors_origins),
            origins=settings.cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(data.router)
app.include_router(sync.router)


@app.get("/health")
async def health_check():
    """Detailed health check."""
    health = await get_health_status(
        database=container.database(),
        probe=container.probe(),
        queue=container.queue(),
        orchestrator=container.orchestrator(),
        settings=container.settings(),
    )
    return {
        **health,
        "service": "outletsync",
        "version": "1.0.0",
        "environment": "development" if settings.debug else "production",
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting OutletSync services",
                host=settings.host, port=settings.port, debug=settings.debug)
    # Single worker: the mutation queue assumes one writer per replica
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["."] if settings.debug else None,
        reload_excludes=["*.pyc", "__pycache__", "*.log", "*.db"] if settings.debug else None,
    )
