# Services package init
"""
SafeNote Backend — Services Layer
===================================

What:  Business logic sitting between routes (HTTP) and database (persistence).

Service Inventory:
    - NoteService:      Note access-control and mutation rules
    - PasswordHasher:   bcrypt hashing/verification (off the event loop)
    - TurnstileService: Cloudflare Turnstile token verification (httpx)

Services are HTTP-agnostic: they raise application exceptions and return
response models; they never build responses or read requests.
"""
