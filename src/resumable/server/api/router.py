"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from resumable.server.api import downloads, health, uploads

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(uploads.router)
router.include_router(downloads.router)
