"""Main FastAPI application entry point."""

import logging
import os

# Configure logging BEFORE importing any app modules that create loggers
# Get config from environment variables directly to avoid circular import
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE_PATH = os.getenv("LOG_FILE_PATH")

handlers = [logging.StreamHandler()]  # Always log to stdout

if LOG_FILE_PATH:
    handlers.append(logging.FileHandler(LOG_FILE_PATH, mode="a"))

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=handlers,
    force=True,  # Force reconfiguration even if logging was already initialized
)

logger = logging.getLogger(__name__)
logger.info(f"Logging configured: level={LOG_LEVEL}, file={LOG_FILE_PATH or 'stdout only'}")

# Now import everything else after logging is configured
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from file_proxy.config import settings
from file_proxy.middleware.presigned_url import PreSignedUrlAuthenticator, PreSignedUrlMiddleware
from file_proxy.routers import files as files_router
from file_proxy.services.scheduler import SchedulerService
from file_proxy.services.signature_cache import SignatureCache

signature_cache = SignatureCache(grace_seconds=settings.signature_cache_grace_seconds)
scheduler_service = SchedulerService(
    signature_cache, purge_interval_seconds=settings.signature_cache_purge_interval_seconds
)


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Application lifespan manager."""
    logger.info(
        f"Starting {settings.app_name}: serving {settings.local_files_root}, "
        f"protected prefixes {settings.protected_path_prefixes}, "
        f"signature grace window {settings.signature_cache_grace_seconds}s"
    )
    scheduler_service.start()

    yield

    logger.info("Stopping scheduler...")
    scheduler_service.stop()
    logger.info("Application shutdown complete")


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

app.add_middleware(
    PreSignedUrlMiddleware,
    authenticator=PreSignedUrlAuthenticator(settings, signature_cache),
    protected_prefixes=settings.protected_path_prefixes,
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch and log all unhandled exceptions."""
    logger.exception(
        f"Unhandled exception occurred: {exc!r}\n"
        f"Request: {request.method} {request.url.path}\n"
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error occurred. Check logs for details."},
    )


app.include_router(files_router.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "app_name": settings.app_name,
        "cached_signatures": len(signature_cache),
    }
