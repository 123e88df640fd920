"""
SafeNote Backend — Cloudflare Turnstile Verification
======================================================

What:  Server-side verification of Turnstile CAPTCHA tokens.
Why:   Mutating and password-sensitive routes only accept requests a browser
       challenge has vouched for.
How:   POSTs {secret, response, remoteip} as a form to the siteverify endpoint
       and checks `success` in the JSON answer.
Who:   Called by the `require_captcha` route dependency.

Failure Policy:
    Every failure mode rejects the request with CaptchaVerificationError:
    missing token, success=false, transport error, non-2xx answer, invalid
    JSON, or no answer within TURNSTILE_TIMEOUT seconds. The timeout bounds
    the whole round trip (connect + TLS + response), not each phase.

    Tokens are single-use on Cloudflare's side, so failed calls are never retried.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.exceptions import CaptchaVerificationError

logger = logging.getLogger(__name__)


class TurnstileService:
    """
    Client for the Turnstile siteverify API.

    Args:
        secret_key: Turnstile secret (defaults to TURNSTILE_SECRET_KEY)
        verify_url: siteverify endpoint (defaults to TURNSTILE_VERIFY_URL)
        timeout: Overall bound in seconds (defaults to TURNSTILE_TIMEOUT)
        transport: Optional httpx transport; tests pass an httpx.MockTransport
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        verify_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._secret_key = secret_key
        self._verify_url = verify_url
        self._timeout = timeout
        self._transport = transport

    # Settings are read lazily so runtime overrides (tests, reloads) apply.
    @property
    def secret_key(self) -> str:
        return self._secret_key if self._secret_key is not None else settings.turnstile_secret_key

    @property
    def verify_url(self) -> str:
        return self._verify_url or settings.turnstile_verify_url

    @property
    def timeout(self) -> float:
        return self._timeout or settings.turnstile_timeout

    async def _siteverify(self, payload: Dict[str, str]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.verify_url, data=payload)
            response.raise_for_status()
            return response.json()

    async def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> None:
        """
        Verify a client token; returns None on success.

        Raises:
            CaptchaVerificationError: token rejected or verification unavailable
        """
        if not token:
            raise CaptchaVerificationError(message="CAPTCHA token is missing")

        payload = {"secret": self.secret_key, "response": token}
        if remote_ip:
            payload["remoteip"] = remote_ip

        try:
            result = await asyncio.wait_for(self._siteverify(payload), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning("Turnstile verification timed out after %.1fs", self.timeout)
            raise CaptchaVerificationError(
                message="CAPTCHA verification timed out. Please try again.",
                context={"timeout": self.timeout},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: answer body was not JSON
            logger.error("Turnstile verification service error: %s", str(e))
            raise CaptchaVerificationError(
                message="CAPTCHA verification is unavailable. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        if not isinstance(result, dict) or result.get("success") is not True:
            error_codes = result.get("error-codes", []) if isinstance(result, dict) else []
            logger.info("Turnstile rejected token: %s", error_codes)
            raise CaptchaVerificationError(
                message="CAPTCHA verification failed",
                context={"error_codes": error_codes},
            )


# ── Singleton Instance ────────────────────────────────────────────────────
captcha_service = TurnstileService()
