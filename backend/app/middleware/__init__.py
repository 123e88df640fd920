# Middleware package init
"""
SafeNote Backend — Middleware Package
=======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [CORS] → [Request ID] → [Rate Limit] → [Logging] → [GZip] → Route

    1. CORS: FastAPI's CORSMiddleware; answers preflights and adds CORS
       headers to every response, 429s included
    2. Request ID: Generate correlation ID for logging and error bodies
    3. Rate Limit: Reject abusive requests before any other processing
    4. Logging: Log method, path, status and duration with the request ID

The CAPTCHA gate is not middleware: it needs the parsed JSON body and applies
to selected routes only, so it is a route dependency (app.dependencies).
"""
