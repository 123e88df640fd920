"""
SafeNote Backend — Rate Limiting Middleware
=============================================

What:  Per-IP sliding window rate limits, one quota per route class.
Why:   Stops id enumeration and password brute forcing without accounts.
How:   Each RateLimitRule owns a SlidingWindowLimiter. A request is checked
       against every rule it matches; it is recorded only if all of them allow it.
Who:   Applied to every request via Starlette middleware.
When:  Right after RequestIDMiddleware, ahead of logging and routing.

Default Rules:
    general   every /api/ request            RATE_LIMIT_REQUESTS per RATE_LIMIT_WINDOW
    password  POST .../verify, .../set-password
                                             PASSWORD_RATE_LIMIT_REQUESTS per
                                             PASSWORD_RATE_LIMIT_WINDOW

Algorithm: Sliding Window Log
    1. Each key (client IP) gets a list of request timestamps
    2. On each request, drop timestamps older than the window
    3. If remaining count >= limit, reject with 429
    4. Otherwise, append the current timestamp

    State is per process. Multiple workers each enforce their own quota.
"""

import logging
import re
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings
from app.dependencies import get_client_ip
from app.exceptions import RateLimitExceededError
from app.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# Prune keys with no hits inside the window every N recorded hits
CLEANUP_INTERVAL = 1000


class SlidingWindowLimiter:
    """
    In-memory sliding window counter keyed by client.

    Args:
        limit: Max requests per window
        window: Window duration in seconds
    """

    def __init__(self, limit: int, window: int):
        self.limit = limit
        self.window = window
        self._hits: Dict[str, List[float]] = defaultdict(list)
        self._recorded = 0

    def check(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Seconds until `key` may retry, or None if it is under quota.
        Does not record a hit.
        """
        now = time.time() if now is None else now
        window_start = now - self.window
        hits = [ts for ts in self._hits.get(key, ()) if ts > window_start]
        if hits:
            self._hits[key] = hits
        else:
            self._hits.pop(key, None)

        if len(hits) >= self.limit:
            # When the oldest request in the window expires
            return int(hits[0] + self.window - now) + 1
        return None

    def record(self, key: str, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        self._hits[key].append(now)
        self._recorded += 1
        if self._recorded % CLEANUP_INTERVAL == 0:
            self.cleanup(now)

    def cleanup(self, now: Optional[float] = None) -> None:
        """Remove keys that have no requests within the current window."""
        now = time.time() if now is None else now
        window_start = now - self.window
        inactive = [
            key for key, timestamps in self._hits.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for key in inactive:
            del self._hits[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))

    def __len__(self) -> int:
        return len(self._hits)


@dataclass
class RateLimitRule:
    """A route class (path regex + methods) with its own limiter."""
    name: str
    limiter: SlidingWindowLimiter
    path_pattern: str
    methods: FrozenSet[str] = field(default_factory=frozenset)  # empty = any method

    def __post_init__(self):
        self._regex = re.compile(self.path_pattern)

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        return self._regex.match(path) is not None


def build_default_rules() -> List[RateLimitRule]:
    """General and password-route quotas from settings."""
    return [
        RateLimitRule(
            name="general",
            limiter=SlidingWindowLimiter(settings.rate_limit_requests, settings.rate_limit_window),
            path_pattern=r"^/api/",
        ),
        RateLimitRule(
            name="password",
            limiter=SlidingWindowLimiter(
                settings.password_rate_limit_requests, settings.password_rate_limit_window
            ),
            path_pattern=r"^/api/notes/[^/]+/(verify|set-password)/?$",
            methods=frozenset({"POST"}),
        ),
    ]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies every matching RateLimitRule to each request.

    Excluded paths:
        - /health: Health checks should never be rate-limited
        - /docs, /openapi.json, /redoc: API documentation
        - any OPTIONS request (CORS preflight)

    Response on rate limit:
        HTTP 429 Too Many Requests
        Retry-After header: Seconds until the oldest counted request expires
        Body: the standard error shape (see RateLimitExceededError)

    The response is built here rather than raised: exceptions raised inside
    BaseHTTPMiddleware bypass the app's exception handlers.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, rules: Optional[Sequence[RateLimitRule]] = None, **kwargs):
        super().__init__(app, **kwargs)
        self.rules = list(rules) if rules is not None else build_default_rules()

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        method = request.method
        # CORS preflights never count against a quota
        if path in self.EXCLUDED_PATHS or method == "OPTIONS":
            return await call_next(request)

        matched = [rule for rule in self.rules if rule.matches(method, path)]
        if not matched:
            return await call_next(request)

        client_ip = get_client_ip(request)
        now = time.time()

        for rule in matched:
            retry_after = rule.limiter.check(client_ip, now)
            if retry_after is not None:
                logger.warning(
                    "Rate limit '%s' exceeded for IP %s: %d requests in %ds window",
                    rule.name,
                    client_ip,
                    rule.limiter.limit,
                    rule.limiter.window,
                )
                exc = RateLimitExceededError(
                    retry_after=retry_after, context={"rule": rule.name}
                )
                return JSONResponse(
                    status_code=429,
                    content={
                        "error": "rate_limit_exceeded",
                        "message": exc.message,
                        "details": exc.context,
                        "request_id": request_id_var.get(""),
                    },
                    headers={"Retry-After": str(retry_after)},
                )

        for rule in matched:
            rule.limiter.record(client_ip, now)

        return await call_next(request)
