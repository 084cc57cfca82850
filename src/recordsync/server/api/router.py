"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from recordsync.server.api import blobs, health, records

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(records.router)
router.include_router(blobs.router)
