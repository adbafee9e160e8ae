"""API router package for the Tripdesk service."""
from fastapi import APIRouter

from .routes import clients, exports, organizations, segments, trips, variants, versions

router = APIRouter()
router.include_router(organizations.router)
router.include_router(clients.router)
router.include_router(trips.router)
router.include_router(versions.router)
router.include_router(segments.router)
router.include_router(variants.router)
router.include_router(exports.router)

__all__ = ["router"]
