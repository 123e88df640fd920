"""
SafeNote Backend — Pydantic Request/Response Schemas
======================================================

What:  Pydantic models defining the API contract between frontend and backend.
Why:   Input parsing, response serialization, and OpenAPI doc generation.
How:   Field names are snake_case in Python and camelCase on the wire
       (`requiresPassword`, `newId`, `noteId`) through aliases. FastAPI
       serializes responses by alias.

Required-looking fields (password, newId, noteId) are Optional here on
purpose: a missing value is a business-rule BadRequest (400) raised by
NoteService, not a schema 422.
"""

from typing import Optional

from pydantic import BaseModel, Field

# Request field / query parameter carrying the Cloudflare Turnstile token.
CAPTCHA_TOKEN_FIELD = "cf-turnstile-response"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteUpdateRequest(BaseModel):
    """Body of POST /api/notes/{noteId}."""
    content: Optional[str] = Field(
        default="",
        description="New note content; null or missing saves an empty note",
    )
    password: Optional[str] = Field(
        default=None,
        description="Note password; required when the note is protected",
    )


class PasswordRequest(BaseModel):
    """Body of POST /api/notes/{noteId}/verify and /set-password."""
    password: Optional[str] = Field(default=None, description="Note password")


class RenameRequest(BaseModel):
    """Body of POST /api/notes/{oldId}/rename."""
    new_id: Optional[str] = Field(
        default=None,
        alias="newId",
        description="New identifier (case-insensitive)",
    )

    model_config = {"populate_by_name": True}


class AvailabilityRequest(BaseModel):
    """Body of POST /api/notes/check-availability."""
    note_id: Optional[str] = Field(
        default=None,
        alias="noteId",
        description="Identifier to check (case-insensitive)",
    )

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteReadResponse(BaseModel):
    """
    What:  Result of reading a note.
    Why content is optional: a protected note answers with
           `{"requiresPassword": true}` only; the route drops null fields.
    """
    requires_password: bool = Field(
        alias="requiresPassword",
        description="True when the note must be unlocked via /verify",
    )
    content: Optional[str] = Field(
        default=None,
        description="Note content; omitted for protected notes",
    )

    model_config = {"populate_by_name": True}


class NoteContentResponse(BaseModel):
    """Returned by /verify once the password matched (or none was set)."""
    content: str


class MessageResponse(BaseModel):
    message: str


class RenameResponse(BaseModel):
    message: str = Field(default="Note renamed")
    new_id: str = Field(alias="newId", description="Normalized new identifier")

    model_config = {"populate_by_name": True}


class AvailabilityResponse(BaseModel):
    available: bool


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "unauthorized",
            "message": "Incorrect password",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer probes."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
