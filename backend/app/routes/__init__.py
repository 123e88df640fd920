# Routes package init
"""
SafeNote Backend — API Routes Package
=======================================

Route Inventory:
    - notes.py:   /api/notes/...   (read, update, verify, set-password,
                                    rename, check-availability)
    - health.py:  GET /health      (service health check)

Design Principle:
    Routes are THIN: they parse the request, attach the CAPTCHA gate
    dependency where needed, call NoteService, and return its model.
    Access rules belong in NoteService, not here.
"""
