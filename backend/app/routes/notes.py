"""
SafeNote Backend — Notes Route Handlers
=========================================

What:  The note API under /api/notes.
Why:   Entry point for the frontend editor: open, save, lock, unlock, rename.
How:   Parses the body, lets dependencies run the CAPTCHA gate, delegates to
       NoteService and returns its response model. Errors are raised as
       application exceptions and formatted by the global handlers.

Route Inventory:
    POST /api/notes/check-availability     is an id free?
    GET  /api/notes/{note_id}              read (creates on first access)
    POST /api/notes/{note_id}              update content
    POST /api/notes/{note_id}/verify       unlock protected content
    POST /api/notes/{note_id}/set-password protect (one-time)
    POST /api/notes/{note_id}/rename       move to a new id

Route Order:
    check-availability is registered before POST /{note_id}; otherwise the
    literal segment would be captured as a note id.

Caching:
    Every response is `Cache-Control: no-store`. Note content changes at any
    time and unlocked content must never be kept by shared caches.

Bodies:
    A missing body is read as `{}`, so the service reports the missing field
    (400). Malformed JSON or wrong types are 400 via the global handler.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import require_captcha
from app.schemas.note import (
    AvailabilityRequest,
    AvailabilityResponse,
    ErrorResponse,
    MessageResponse,
    NoteContentResponse,
    NoteReadResponse,
    NoteUpdateRequest,
    PasswordRequest,
    RenameRequest,
    RenameResponse,
)
from app.services.note_service import note_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

_CAPTCHA = [Depends(require_captcha)]

_ERRORS = {
    400: {"description": "Missing or invalid field", "model": ErrorResponse},
    403: {"description": "CAPTCHA verification failed", "model": ErrorResponse},
    404: {"description": "Note not found", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    500: {"description": "Server error", "model": ErrorResponse},
}


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


@router.post(
    "/check-availability",
    response_model=AvailabilityResponse,
    responses={400: _ERRORS[400], 429: _ERRORS[429], 500: _ERRORS[500]},
    summary="Check whether a note ID is free",
)
async def check_availability(
    response: Response,
    body: AvailabilityRequest = AvailabilityRequest(),
    db: AsyncSession = Depends(get_db_session),
) -> AvailabilityResponse:
    """Used by the rename dialog before submitting. IDs compare case-insensitively."""
    _no_store(response)
    return await note_service.check_availability(db, body.note_id)


@router.get(
    "/{note_id}",
    response_model=NoteReadResponse,
    response_model_exclude_none=True,
    responses={k: v for k, v in _ERRORS.items() if k != 404},
    dependencies=_CAPTCHA,
    summary="Read a note (created empty on first access)",
    description=(
        "Returns `{content, requiresPassword: false}` for unprotected notes and "
        "`{requiresPassword: true}` without content for protected ones. "
        "An unknown ID is created as an empty note. When the CAPTCHA gate is "
        "enabled, pass the token as the `cf-turnstile-response` query parameter."
    ),
)
async def get_note(
    note_id: str,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> NoteReadResponse:
    _no_store(response)
    return await note_service.get_note(db, note_id)


@router.post(
    "/{note_id}",
    response_model=MessageResponse,
    responses={**_ERRORS, 401: {"description": "Password required or incorrect", "model": ErrorResponse}},
    dependencies=_CAPTCHA,
    summary="Update note content",
    description=(
        "Overwrites the content (blank content allowed). Protected notes require "
        "the matching `password` in the body."
    ),
)
async def update_note(
    note_id: str,
    response: Response,
    body: NoteUpdateRequest = NoteUpdateRequest(),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    _no_store(response)
    return await note_service.update(db, note_id, body.content, body.password)


@router.post(
    "/{note_id}/verify",
    response_model=NoteContentResponse,
    responses={**_ERRORS, 401: {"description": "Password required or incorrect", "model": ErrorResponse}},
    dependencies=_CAPTCHA,
    summary="Unlock a protected note",
)
async def verify_note(
    note_id: str,
    response: Response,
    body: PasswordRequest = PasswordRequest(),
    db: AsyncSession = Depends(get_db_session),
) -> NoteContentResponse:
    """Returns the content when the password matches; unprotected notes need none."""
    _no_store(response)
    return await note_service.verify(db, note_id, body.password)


@router.post(
    "/{note_id}/set-password",
    response_model=MessageResponse,
    responses={**_ERRORS, 409: {"description": "Password already set", "model": ErrorResponse}},
    dependencies=_CAPTCHA,
    summary="Protect a note with a password (one-time)",
)
async def set_password(
    note_id: str,
    response: Response,
    body: PasswordRequest = PasswordRequest(),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    _no_store(response)
    return await note_service.set_password(db, note_id, body.password)


@router.post(
    "/{note_id}/rename",
    response_model=RenameResponse,
    responses={**_ERRORS, 409: {"description": "New ID already taken", "model": ErrorResponse}},
    dependencies=_CAPTCHA,
    summary="Rename a note",
    description="Moves the note, with its content and password, to `newId`.",
)
async def rename_note(
    note_id: str,
    response: Response,
    body: RenameRequest = RenameRequest(),
    db: AsyncSession = Depends(get_db_session),
) -> RenameResponse:
    _no_store(response)
    return await note_service.rename(db, note_id, body.new_id)
