"""Generation request (note) model."""

import uuid
from datetime import datetime
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from notegen_shared.schemas.common import NoteStatus

from .base import utcnow


def new_note_id() -> str:
    return uuid.uuid4().hex


class Note(SQLModel, table=True):
    __tablename__ = "notes"
    __table_args__ = (
        sa.Index("ix_notes_user_id_created_at", "user_id", "created_at"),
        sa.Index("ix_notes_created_at_archived", "created_at", "archived"),
    )

    id: str = Field(default_factory=new_note_id, primary_key=True, max_length=32)
    user_id: str = Field(nullable=False, max_length=128)
    prompt: str = Field(sa_type=sa.Text, nullable=False)
    options: dict[str, Any] = Field(
        default_factory=dict,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
    # Only "pending" is written here; the generation worker moves it to done | error.
    status: NoteStatus = Field(
        default=NoteStatus.PENDING,
        sa_type=sa.Enum(
            NoteStatus,
            name="note_status",
            native_enum=False,
            length=16,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )
    content: Optional[str] = Field(default=None, sa_type=sa.Text)
    error: Optional[str] = Field(default=None, sa_type=sa.Text)
    archived: bool = Field(default=False, nullable=False)
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
