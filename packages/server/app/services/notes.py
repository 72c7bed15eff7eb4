"""
Note service — admission of generation requests, status lookup, expiry.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Identity
from app.core.config import get_settings
from app.core.errors import Forbidden, InvalidRequest, NotFound
from app.models.base import utcnow
from app.models.note import Note
from app.services.quota import acquire_admission_lock, check_quota
from notegen_shared.schemas.common import NoteStatus
from notegen_shared.schemas.notes import NoteGenerateRequest

log = structlog.get_logger()
settings = get_settings()


def _validate_request(body: Optional[NoteGenerateRequest]) -> tuple[str, dict[str, Any]]:
    prompt = body.prompt if body else None
    options = body.options if body else None
    if not isinstance(prompt, str) or not prompt:
        raise InvalidRequest("Missing required fields")
    if not isinstance(options, dict) or not options:
        raise InvalidRequest("Missing required fields")
    return prompt, options


async def submit_note(
    identity: Identity,
    body: Optional[NoteGenerateRequest],
    session: AsyncSession,
    now: Optional[datetime] = None,
) -> Note:
    """Admit a generation request and store it as pending.

    Nothing is written unless the quota check and validation both pass. The
    transaction is committed here so the returned id is durable and the
    per-subject admission lock is released.
    """
    now = now or utcnow()

    if settings.serialize_admissions:
        await acquire_admission_lock(identity.subject, session)

    quota = await check_quota(identity.subject, session, now)
    prompt, options = _validate_request(body)

    note = Note(
        user_id=identity.subject,
        prompt=prompt,
        options=options,
        status=NoteStatus.PENDING,
        created_at=now.astimezone(timezone.utc),
    )
    session.add(note)
    await session.commit()

    log.info(
        "note.admitted",
        note_id=note.id,
        user_id=identity.subject,
        used=quota.used + 1,
        limit=quota.limit,
    )
    return note


async def get_note_status(
    identity: Identity, note_id: str, session: AsyncSession
) -> Note:
    """Fetch a note owned by the caller."""
    if not note_id:
        raise InvalidRequest("Missing note ID")

    note = await session.get(Note, note_id)
    if note is None:
        raise NotFound("Note not found")
    if note.user_id != identity.subject:
        log.warning("note.access_denied", note_id=note_id, user_id=identity.subject)
        raise Forbidden()
    return note


async def delete_expired_notes(
    session: AsyncSession, now: Optional[datetime] = None
) -> int:
    """Delete archived notes older than the retention window.

    Deletes go through the ORM so the note deletion hooks fire; the caller's
    transaction makes the batch all-or-nothing.
    """
    cutoff = (now or utcnow()) - timedelta(days=settings.archive_retention_days)
    result = await session.execute(
        select(Note).where(
            Note.created_at < cutoff.astimezone(timezone.utc),
            Note.archived == True,  # noqa: E712
        )
    )
    notes = result.scalars().all()
    for note in notes:
        await session.delete(note)
    await session.flush()
    return len(notes)
