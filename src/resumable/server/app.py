"""FastAPI application for the resumable transfer server.

This module creates and configures the FastAPI application with:
- PUT/HEAD /upload/{name} for offset-validated chunk uploads
- GET /download/{name} for full and byte-range downloads

Usage:
    uvicorn resumable.server.app:app_factory --factory --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from resumable.server.api.router import router as api_router
from resumable.server.leases import DEFAULT_LEASE_TTL, UploadLeases
from resumable.server.ranges import RangeServer
from resumable.server.storage import ArtifactStore, create_store
from resumable.server.uploads import UploadStore

# Configuration from environment variables with defaults
LOG_PATH = Path(os.environ.get("RESUMABLE_LOG_PATH", "resumable-server.log"))
LEASE_TTL = float(os.environ.get("RESUMABLE_LEASE_TTL", str(DEFAULT_LEASE_TTL)))

logger = logging.getLogger(__name__)


def build_storage_config() -> dict[str, str | None]:
    """Build storage configuration from environment variables."""
    storage_type = os.environ.get("RESUMABLE_STORAGE_TYPE", "local")
    if storage_type == "memory":
        return {"type": "memory"}

    # Local storage (default)
    return {
        "type": storage_type,
        "local_path": os.environ.get("RESUMABLE_STORAGE_PATH", "uploads"),
    }


def setup_logging(log_path: Path | None, level: int = logging.INFO) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file, or None for stdout only.
        level: Log level for the resumable logger.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for resumable
    root_logger = logging.getLogger("resumable")
    root_logger.setLevel(level)
    if root_logger.handlers:
        return

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is None:
        return

    # File handler
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


def create_app(
    store: ArtifactStore,
    leases: UploadLeases | None = None,
) -> FastAPI:
    """Create FastAPI application around an artifact store.

    This is primarily used for testing with isolated storage.

    Args:
        store: ArtifactStore holding uploaded artifacts.
        leases: Optional lease table; when None a table with the
            configured TTL is created.

    Returns:
        Configured FastAPI application.
    """
    if leases is None:
        leases = UploadLeases(ttl=LEASE_TTL)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("Resumable Transfer Server Starting")
        logger.info("=" * 60)
        logger.info("  Storage:   %s", store.location)
        logger.info("  Lease TTL: %ss", leases.ttl)
        logger.info("  Logs:      %s", LOG_PATH.absolute())
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("Resumable Transfer Server shutting down")

    application = FastAPI(
        title="Resumable Transfer Server",
        description="Chunked, resumable file uploads with byte-range downloads",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.state.store = store
    application.state.uploads = UploadStore(store, leases)
    application.state.ranges = RangeServer(store)

    application.include_router(api_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    setup_logging(LOG_PATH)
    return create_app(store=create_store(build_storage_config()))
