"""
Note generation API endpoints.

POST    /api/v1/notes                   — Submit a generation request
OPTIONS /api/v1/notes                   — CORS pre-flight
GET     /api/v1/notes/status?noteId=    — Poll a request's status
OPTIONS /api/v1/notes/status            — CORS pre-flight
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity, api_key_header, get_identity, verify
from app.core.database import get_session
from app.core.errors import InvalidRequest
from app.core.middleware import preflight_response
from app.services import notes as note_service
from notegen_shared.schemas.common import ErrorResponse
from notegen_shared.schemas.notes import (
    NoteGenerateRequest,
    NoteGenerateResponse,
    NoteStatusResponse,
    QuotaExceededResponse,
)

router = APIRouter()


async def _read_body(request: Request) -> Optional[NoteGenerateRequest]:
    """Parse the submission body leniently.

    Unparseable or non-object bodies come back as None and are rejected by
    the admission service as missing fields, after the quota check.
    """
    try:
        payload = await request.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return NoteGenerateRequest.model_validate(payload)


@router.options("", include_in_schema=False)
async def generate_note_preflight():
    return preflight_response("GET, POST")


@router.post(
    "",
    response_model=NoteGenerateResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        429: {"model": QuotaExceededResponse},
    },
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": NoteGenerateRequest.model_json_schema()}},
        },
    },
)
async def generate_note(
    request: Request,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
):
    """Queue a note for generation. The returned id is polled via /notes/status."""
    # The body is only read once the caller is authenticated.
    body = await _read_body(request)
    note = await note_service.submit_note(identity, body, session)
    return NoteGenerateResponse(note_id=note.id)


@router.options("/status", include_in_schema=False)
async def note_status_preflight():
    return preflight_response("GET")


@router.get(
    "/status",
    response_model=NoteStatusResponse,
    response_model_exclude_none=True,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
async def get_note_status(
    noteId: Optional[str] = Query(default=None),
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
):
    """Current status of one of the caller's notes."""
    # The id is checked before the caller is authenticated.
    if not noteId:
        raise InvalidRequest("Missing note ID")
    identity = await verify(authorization)
    note = await note_service.get_note_status(identity, noteId, session)
    return NoteStatusResponse(status=note.status, content=note.content, error=note.error)
