"""
SafeNote Backend — Shared Request Dependencies
================================================

What:  Request-level helpers shared by routes and middleware, including the
       CAPTCHA gate.
Why:   The CAPTCHA check is a cross-cutting stage: routes opt in with
       `dependencies=[Depends(require_captcha)]` and NoteService never sees it.
How:   FastAPI runs route dependencies after parsing the body and before the
       handler, so the handler only executes once the token checks out.
"""

import logging
from typing import Any, Optional

from starlette.requests import Request

from app.config import settings
from app.schemas.note import CAPTCHA_TOKEN_FIELD
from app.services.captcha_service import captcha_service

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Client address used for rate limiting, logging and CAPTCHA remoteip.

    Behind a reverse proxy set TRUST_PROXY_HEADERS=true so the first
    X-Forwarded-For hop is used instead of the proxy's own address.
    """
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return getattr(request.client, "host", "unknown") if request.client else "unknown"


async def _extract_captcha_token(request: Request) -> Optional[str]:
    """
    Token from the `cf-turnstile-response` JSON body field, falling back to
    the query parameter of the same name (the only source for GET requests).
    """
    token: Any = None
    if request.method != "GET":
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            token = body.get(CAPTCHA_TOKEN_FIELD)
    if not token:
        token = request.query_params.get(CAPTCHA_TOKEN_FIELD)
    return token if isinstance(token, str) and token else None


async def require_captcha(request: Request) -> None:
    """
    Route dependency: reject the request unless Turnstile verifies its token.

    No-op while TURNSTILE_SECRET_KEY is unset (startup logs a warning).
    Raises:
        CaptchaVerificationError: → 403 via the global handler
    """
    if not settings.captcha_enabled:
        return
    token = await _extract_captcha_token(request)
    await captcha_service.verify(token, remote_ip=get_client_ip(request))
