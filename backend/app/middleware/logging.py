"""
SafeNote Backend — Request Logging Middleware
===============================================

What:  One access log line per HTTP request with status and duration.
Why:   Enables monitoring, debugging and spotting abuse (bursts of 401s on
       /verify, 403s from the CAPTCHA gate).
How:   Times the downstream call and logs to the `safenote.access` logger with
       the request ID from RequestIDMiddleware.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, client IP, request ID
    ❌ Don't log: request bodies (note content, passwords, CAPTCHA tokens)
       or query strings (GET carries the CAPTCHA token there)
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.dependencies import get_client_ip
from app.middleware.request_id import request_id_var

logger = logging.getLogger("safenote.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log level follows the response status:
        5xx → ERROR, 4xx → WARNING, otherwise INFO.
    /health is skipped (probes run every few seconds).
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path == "/health":
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        client_ip = get_client_ip(request)
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )
        return response
