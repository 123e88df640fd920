"""
SafeNote Backend — Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for each failure the API can report.
Why:   Services raise domain errors; global handlers in main.py turn them into
       JSON responses with the right status code. Services never build HTTP
       responses themselves.
How:   Each exception carries a user-safe message and an optional context dict.

Exception Hierarchy:
    SafeNoteError (base)
    ├── ValidationError            → 400 Bad Request (missing/invalid field)
    ├── UnauthorizedError          → 401 Unauthorized (missing/wrong password)
    ├── CaptchaVerificationError   → 403 Forbidden (Turnstile rejected the request)
    ├── NotFoundError              → 404 Not Found
    ├── ConflictError              → 409 Conflict (id taken, password already set)
    ├── RateLimitExceededError     → 429 Too Many Requests
    └── DatabaseError              → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class SafeNoteError(Exception):
    """
    Base exception for all SafeNote application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SafeNoteError):
    """
    Raised when client input fails a business rule.

    When:    Missing password, missing/identical rename target, id too long,
             content too long.
    HTTP:    400 Bad Request

    Schema-level problems (malformed JSON, wrong types) arrive as FastAPI's
    RequestValidationError, which main.py reports with this same 400 body.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(SafeNoteError):
    """
    Raised when a protected note is accessed without the matching password.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Incorrect password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class CaptchaVerificationError(SafeNoteError):
    """
    Raised when the CAPTCHA gate rejects a request.

    When:    Token missing, Turnstile answered success=false, the verification
             service errored, or it did not answer within the timeout.
    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "CAPTCHA verification failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SafeNoteError):
    """
    Raised when a requested note does not exist.

    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(SafeNoteError):
    """
    Raised when a write would collide with existing state.

    When:    Rename target id already taken; password already set on a note.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state of the note",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(SafeNoteError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic. Details
        (statement, constraint name) are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(SafeNoteError):
    """
    Raised when a client exceeds a per-IP request quota.

    HTTP:    429 Too Many Requests, with a Retry-After header.
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
