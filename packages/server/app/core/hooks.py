"""
Change hooks on the notes table.

Fired by the ORM unit of work when a note row is inserted or deleted (bulk
SQL deletes bypass them). They only log; a failing hook never affects the
write that triggered it.
"""

from __future__ import annotations

import structlog
from sqlalchemy import event

from app.models.note import Note

log = structlog.get_logger()


def _emit(event_name: str, target: Note) -> None:
    try:
        log.info(event_name, note_id=target.id, user_id=target.user_id)
    except Exception:
        log.exception("note.hook_failed", hook=event_name)


@event.listens_for(Note, "after_insert")
def on_note_created(mapper, connection, target: Note) -> None:
    _emit("note.created", target)


@event.listens_for(Note, "after_delete")
def on_note_deleted(mapper, connection, target: Note) -> None:
    _emit("note.deleted", target)
