"""Note generation request schemas."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import ErrorResponse, NoteStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class NoteGenerateRequest(BaseModel):
    """Body of a generation request.

    Fields are deliberately loose: presence and emptiness are checked by the
    admission service after the quota check, not by the parser.
    """
    model_config = ConfigDict(extra="ignore")

    prompt: Any = None
    options: Any = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class NoteGenerateResponse(BaseModel):
    """Returned once a request has been admitted and stored as pending."""
    model_config = ConfigDict(populate_by_name=True)

    note_id: str = Field(serialization_alias="noteId")
    message: str = "Note generation request received"


class NoteStatusResponse(BaseModel):
    """Current state of a request.

    ``content`` is only populated once the worker marks the note ``done``,
    ``error`` only once it marks it ``error``. Both are omitted while pending.
    """
    status: NoteStatus
    content: Optional[Any] = None
    error: Optional[str] = None


class QuotaExceededResponse(ErrorResponse):
    """429 body: the error envelope plus the caller's limit and next reset."""
    model_config = ConfigDict(populate_by_name=True)

    limit: int
    reset_time: str = Field(alias="resetTime")
