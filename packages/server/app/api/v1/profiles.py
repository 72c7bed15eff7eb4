"""
Profile lifecycle API endpoints.

POST /api/v1/profiles          — Create (or refresh) the caller's profile
POST /api/v1/profiles/cleanup  — Delete the caller's profile and notes
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity, get_identity
from app.core.database import get_session
from app.services import profiles as profile_service
from notegen_shared.schemas.common import ErrorResponse, SuccessResponse
from notegen_shared.schemas.profiles import ProfileRequest

router = APIRouter()

_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "",
    response_model=SuccessResponse,
    responses=_ERRORS,
)
async def create_user_profile(
    body: ProfileRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
):
    """Create the caller's profile from their verified identity claims."""
    await profile_service.create_profile(identity, body.uid, session)
    return SuccessResponse()


@router.post(
    "/cleanup",
    response_model=SuccessResponse,
    responses=_ERRORS,
)
async def cleanup_user_data(
    body: ProfileRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
):
    """Delete the caller's profile and all of their notes."""
    await profile_service.cleanup_user_data(identity, body.uid, session)
    return SuccessResponse()
