"""
Profile service — profile creation and account data cleanup.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Identity, revoke_subject_tokens
from app.core.errors import Forbidden
from app.models.base import utcnow
from app.models.note import Note
from app.models.profile import UserProfile

log = structlog.get_logger()


def _require_self(identity: Identity, uid: str) -> None:
    if uid != identity.subject:
        log.warning("profile.foreign_uid", user_id=identity.subject, target=uid)
        raise Forbidden("Cannot manage another user's data")


async def create_profile(
    identity: Identity, uid: str, session: AsyncSession
) -> UserProfile:
    """Create or refresh the caller's profile from their verified token.

    ``created_at`` and ``is_premium`` are left alone on an existing profile.
    """
    _require_self(identity, uid)

    profile = await session.get(UserProfile, uid)
    created = profile is None
    if created:
        profile = UserProfile(
            id=uid,
            email=identity.email,
            display_name=identity.display_name,
        )
    else:
        profile.email = identity.email
        profile.display_name = identity.display_name
        profile.updated_at = utcnow()

    session.add(profile)
    await session.commit()

    log.info("profile.created" if created else "profile.refreshed", user_id=uid)
    return profile


async def cleanup_user_data(
    identity: Identity, uid: str, session: AsyncSession
) -> int:
    """Delete the caller's profile and every note they own.

    One transaction; the caller's outstanding tokens are revoked once it has
    committed. Returns the number of notes deleted.
    """
    _require_self(identity, uid)

    profile = await session.get(UserProfile, uid)
    if profile is not None:
        await session.delete(profile)

    result = await session.execute(select(Note).where(Note.user_id == uid))
    notes = result.scalars().all()
    for note in notes:
        await session.delete(note)

    await session.commit()
    await revoke_subject_tokens(uid)

    log.info("profile.cleaned_up", user_id=uid, notes_deleted=len(notes))
    return len(notes)
