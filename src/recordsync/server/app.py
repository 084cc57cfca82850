"""FastAPI application for the recordsync server.

This module creates and configures the FastAPI application with:
- REST API for records and attachment blobs
- Health endpoint used by clients as their connectivity probe

Usage:
    uvicorn recordsync.server.app:app_factory --factory --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from recordsync import __version__
from recordsync.server.api.router import router as api_router
from recordsync.server.database import Database
from recordsync.server.storage import BlobStorage, LocalFSStorage

logger = logging.getLogger(__name__)


def db_path_from_env() -> Path:
    return Path(os.environ.get("RECORDSYNC_DB_PATH", "recordsync.db"))


def storage_path_from_env() -> Path:
    return Path(os.environ.get("RECORDSYNC_STORAGE_PATH", "storage"))


def log_path_from_env() -> Path:
    return Path(os.environ.get("RECORDSYNC_LOG_PATH", "recordsync-server.log"))


def api_token_from_env() -> str | None:
    return os.environ.get("RECORDSYNC_API_TOKEN") or None


def setup_logging(log_path: Path, level: int = logging.INFO) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file.
        level: Level of the recordsync logger.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for recordsync
    root_logger = logging.getLogger("recordsync")
    root_logger.setLevel(level)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(
    db: Database,
    storage: BlobStorage | None = None,
    api_token: str | None = None,
) -> FastAPI:
    """Create FastAPI application with the given database and storage.

    Args:
        db: Database instance.
        storage: Optional BlobStorage instance (blob routes answer 503 without).
        api_token: Bearer token required on /api routes, or None for none.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("recordsync server starting")
        logger.info("=" * 60)
        logger.info("  Database: %s", db.path)
        if storage:
            logger.info("  Storage:  %s", storage.location)
        else:
            logger.info("  Storage:  None (blob storage disabled)")
        logger.info("  Auth:     %s", "bearer token" if api_token else "none")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("recordsync server shutting down")
        db.close()

    application = FastAPI(
        title="recordsync server",
        description="Record and attachment store for recordsync clients",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.db = db
    application.state.storage = storage
    application.state.api_token = api_token

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode (configured from env)."""
    setup_logging(log_path_from_env())
    return create_app(
        db=Database(db_path_from_env()),
        storage=LocalFSStorage(storage_path_from_env()),
        api_token=api_token_from_env(),
    )
