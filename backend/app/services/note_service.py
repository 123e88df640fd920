"""
SafeNote Backend — Note Service (Access Control & Mutation Rules)
===================================================================

What:  Every rule deciding when a note may be read, written, protected or renamed.
Why:   Keeps the access protocol in one place, independent of HTTP, CAPTCHA and
       rate limiting. Routes only translate requests into these calls.
How:   Each operation normalizes the id, loads the note through the session it
       is given, applies the rule, and flushes. The request-scoped session
       (get_db_session) commits or rolls back the whole operation.

Creation Policy:
    Exactly one operation creates notes: get() via get_or_create(). Reading an
    unknown id yields an empty, unprotected note. verify(), update(),
    set_password() and rename() treat an unknown id as NotFound.

Protection Rules:
    ┌─────────────────┬──────────────────────┬──────────────────────────────┐
    │ Operation       │ Unprotected note     │ Protected note               │
    ├─────────────────┼──────────────────────┼──────────────────────────────┤
    │ get             │ content              │ requiresPassword only        │
    │ verify          │ content              │ content iff password matches │
    │ update          │ overwrite            │ overwrite iff password match │
    │ set_password    │ store hash           │ Conflict (one-time)          │
    │ rename          │ move                 │ move (hash travels along)    │
    └─────────────────┴──────────────────────┴──────────────────────────────┘

Rename Atomicity:
    Rename rewrites the primary key of the existing row (a single UPDATE)
    instead of insert-then-delete, so there is no moment where both ids, or
    neither, exist.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from app.models.note import NOTE_ID_MAX_LENGTH, Note
from app.schemas.note import (
    AvailabilityResponse,
    MessageResponse,
    NoteContentResponse,
    NoteReadResponse,
    RenameResponse,
)
from app.services.password_hasher import PasswordHasher, password_hasher

logger = logging.getLogger(__name__)

# Ids that would be shadowed by literal routes under /api/notes/
RESERVED_NOTE_IDS = frozenset({"check-availability"})


def normalize_note_id(raw: Optional[str], field: str = "noteId") -> str:
    """
    Lowercase a client-supplied id and check it can be stored.

    Raises:
        ValidationError: id missing, too long, or reserved
    """
    if not raw:
        raise ValidationError(message=f"{field} is required", field=field)
    note_id = raw.lower()
    if len(note_id) > NOTE_ID_MAX_LENGTH:
        raise ValidationError(
            message=f"{field} must be at most {NOTE_ID_MAX_LENGTH} characters",
            field=field,
        )
    if note_id in RESERVED_NOTE_IDS:
        raise ValidationError(message=f"'{note_id}' is a reserved ID", field=field)
    return note_id


@contextmanager
def _translate_db_errors(action: str, note_id: str) -> Iterator[None]:
    """Wrap unexpected SQLAlchemy failures in DatabaseError (details stay in the log)."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Database error while %s note %s: %s", action, note_id, str(e), exc_info=True)
        raise DatabaseError(
            message="A database error occurred. Please try again later.",
            context={"note_id": note_id, "error_type": type(e).__name__},
        ) from e


class NoteService:
    """
    Business logic layer for note operations.

    Stateless apart from the password hasher; every call receives the
    session it should work in.
    """

    def __init__(self, hasher: Optional[PasswordHasher] = None):
        self.hasher = hasher or password_hasher

    # ── Lookups ───────────────────────────────────────────────────────────

    async def _find(self, db: AsyncSession, note_id: str) -> Optional[Note]:
        result = await db.execute(select(Note).where(Note.note_id == note_id))
        return result.scalar_one_or_none()

    async def _exists(self, db: AsyncSession, note_id: str) -> bool:
        result = await db.execute(select(Note.note_id).where(Note.note_id == note_id))
        return result.scalar_one_or_none() is not None

    async def _require(self, db: AsyncSession, note_id: str) -> Note:
        note = await self._find(db, note_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return note

    async def _check_password(self, note: Note, password: Optional[str]) -> None:
        """Raise UnauthorizedError unless `password` unlocks a protected note."""
        if not note.is_protected:
            return
        if not password:
            raise UnauthorizedError(message="Password required")
        if not await self.hasher.verify(password, note.password_hash):
            logger.warning("Incorrect password supplied for note %s", note.note_id)
            raise UnauthorizedError(message="Incorrect password")

    async def get_or_create(self, db: AsyncSession, note_id: str) -> Note:
        """
        Return the note stored under an already-normalized id, creating an
        empty unprotected one when it does not exist.

        Two first reads of the same id can race; the loser's INSERT hits the
        primary key, is rolled back, and the winner's row is returned.
        """
        note = await self._find(db, note_id)
        if note is not None:
            return note

        note = Note(note_id=note_id, content="")
        db.add(note)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            note = await self._find(db, note_id)
            if note is None:
                raise
            return note

        logger.info("Created note %s", note_id)
        return note

    # ── Operations ────────────────────────────────────────────────────────

    async def get_note(self, db: AsyncSession, raw_note_id: str) -> NoteReadResponse:
        """
        Read a note, creating it empty on first access.

        Returns:
            content + requiresPassword=false, or requiresPassword=true alone
            when the note is protected.
        """
        note_id = normalize_note_id(raw_note_id)
        with _translate_db_errors("reading", note_id):
            note = await self.get_or_create(db, note_id)

        if note.is_protected:
            return NoteReadResponse(requires_password=True)
        return NoteReadResponse(requires_password=False, content=note.content)

    async def verify(
        self, db: AsyncSession, raw_note_id: str, password: Optional[str]
    ) -> NoteContentResponse:
        """
        Unlock a note's content with its password.

        Raises:
            NotFoundError: note does not exist
            UnauthorizedError: note is protected and password missing/wrong
        """
        note_id = normalize_note_id(raw_note_id)
        with _translate_db_errors("verifying", note_id):
            note = await self._require(db, note_id)
        await self._check_password(note, password)
        return NoteContentResponse(content=note.content)

    async def update(
        self,
        db: AsyncSession,
        raw_note_id: str,
        content: Optional[str],
        password: Optional[str] = None,
    ) -> MessageResponse:
        """
        Overwrite a note's content; blank content is allowed.

        Raises:
            ValidationError: content exceeds MAX_CONTENT_LENGTH
            NotFoundError: note does not exist
            UnauthorizedError: note is protected and password missing/wrong
        """
        note_id = normalize_note_id(raw_note_id)
        content = content or ""
        if len(content) > settings.max_content_length:
            raise ValidationError(
                message=f"Content must be at most {settings.max_content_length} characters",
                field="content",
            )

        with _translate_db_errors("updating", note_id):
            note = await self._require(db, note_id)
            await self._check_password(note, password)
            note.content = content
            await db.flush()

        logger.debug("Updated note %s (%d chars)", note_id, len(content))
        return MessageResponse(message="Note updated")

    async def set_password(
        self, db: AsyncSession, raw_note_id: str, password: Optional[str]
    ) -> MessageResponse:
        """
        Protect a note with a password. One-time: an existing password is never replaced.

        Raises:
            ValidationError: no password given
            NotFoundError: note does not exist
            ConflictError: note already has a password
        """
        note_id = normalize_note_id(raw_note_id)
        if not password:
            raise ValidationError(message="Password required", field="password")

        with _translate_db_errors("protecting", note_id):
            note = await self._require(db, note_id)
            if note.is_protected:
                raise ConflictError(
                    message="A password is already set for this note",
                    context={"note_id": note_id},
                )
            note.password_hash = await self.hasher.hash(password)
            await db.flush()

        logger.info("Password set for note %s", note_id)
        return MessageResponse(message="Password set")

    async def rename(
        self, db: AsyncSession, raw_old_id: str, raw_new_id: Optional[str]
    ) -> RenameResponse:
        """
        Move a note to a new id, keeping content and password hash.

        Raises:
            ValidationError: newId missing, invalid, or equal to the current id
            ConflictError: newId already taken
            NotFoundError: the note being renamed does not exist
        """
        old_id = normalize_note_id(raw_old_id)
        new_id = normalize_note_id(raw_new_id, field="newId")
        if new_id == old_id:
            raise ValidationError(message="New ID must differ from the current ID", field="newId")

        with _translate_db_errors("renaming", old_id):
            if await self._exists(db, new_id):
                raise ConflictError(message="ID already taken", context={"new_id": new_id})

            note = await self._require(db, old_id)
            note.note_id = new_id
            try:
                await db.flush()
            except IntegrityError:
                # newId was created concurrently after the availability check
                await db.rollback()
                raise ConflictError(message="ID already taken", context={"new_id": new_id})

        logger.info("Renamed note %s -> %s", old_id, new_id)
        return RenameResponse(message="Note renamed", new_id=new_id)

    async def check_availability(
        self, db: AsyncSession, raw_note_id: Optional[str]
    ) -> AvailabilityResponse:
        """
        Report whether an id is free to be used as a rename target.

        Reserved and over-long ids are reported as unavailable rather than rejected.
        """
        if not raw_note_id:
            raise ValidationError(message="noteId is required", field="noteId")
        note_id = raw_note_id.lower()
        if note_id in RESERVED_NOTE_IDS or len(note_id) > NOTE_ID_MAX_LENGTH:
            return AvailabilityResponse(available=False)

        with _translate_db_errors("checking", note_id):
            taken = await self._exists(db, note_id)
        return AvailabilityResponse(available=not taken)


# ── Singleton Instance ────────────────────────────────────────────────────
note_service = NoteService()
