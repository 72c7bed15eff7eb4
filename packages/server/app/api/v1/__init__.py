"""
API v1 Router
"""

from fastapi import APIRouter
from . import notes, profiles

router = APIRouter()

router.include_router(notes.router, prefix="/notes", tags=["Notes"])
router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/notes",
            "/notes/status",
            "/profiles",
            "/profiles/cleanup",
        ],
    }
