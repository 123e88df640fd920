"""
SafeNote Backend — Note SQLAlchemy Model
==========================================

What:  ORM model representing the `notes` table.
Why:   Maps Python objects to database rows for type-safe database operations.
How:   Inherits from SQLAlchemy's DeclarativeBase; Alembic reads this for migrations.
Who:   Used by NoteService for note operations and by Alembic for schema management.

Table Design Rationale:
    - note_id as primary key: the user-chosen slug IS the identity; the
      primary key gives uniqueness and the lookup index in one constraint.
      Always stored lowercase (normalized by NoteService before any write).
    - content: TEXT, never NULL; a fresh note is the empty string.
    - password_hash: bcrypt hash or NULL. NULL means "unprotected".
    - created_at / updated_at: UTC, timezone aware.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

NOTE_ID_MAX_LENGTH = 255


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    A text note addressed by a case-insensitive slug.

    Lifecycle:
        1. Created empty on the first read of an unknown id
        2. Content overwritten by updates (password-checked when protected)
        3. Password set at most once
        4. Renamed by changing the primary key in place
        Notes are never deleted.
    """

    __tablename__ = "notes"

    note_id: Mapped[str] = mapped_column(
        String(NOTE_ID_MAX_LENGTH),
        primary_key=True,
        comment="Lowercase user-chosen slug identifying the note",
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
        comment="Note body; empty string for a fresh note",
    )

    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
        comment="bcrypt hash of the note password; NULL when unprotected",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When this note was first created (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="Last content, password or id change (UTC)",
    )

    @property
    def is_protected(self) -> bool:
        return self.password_hash is not None

    def __repr__(self) -> str:
        return f"<Note(note_id='{self.note_id}', protected={self.is_protected})>"
