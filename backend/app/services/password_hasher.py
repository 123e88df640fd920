"""
SafeNote Backend — Password Hashing
=====================================

What:  bcrypt hashing and verification for note passwords.
Why:   One salted, adaptive scheme for every note. Fast unsalted digests are
       never produced or accepted.
How:   bcrypt.gensalt(rounds) per hash; checkpw for comparison. Both run in a
       worker thread because bcrypt is CPU-bound and would otherwise stall the
       event loop for every concurrent request.
"""

import asyncio
import logging
from typing import Optional

import bcrypt

from app.config import settings
from app.exceptions import ValidationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; recent releases reject longer input.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """
    Thin async wrapper around the bcrypt library.

    Args:
        rounds: bcrypt cost factor (defaults to BCRYPT_ROUNDS)
    """

    def __init__(self, rounds: Optional[int] = None):
        self.rounds = rounds or settings.bcrypt_rounds

    def _hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def _check(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash (e.g. a legacy digest)
            logger.warning("Stored password hash has an unrecognized format")
            return False

    async def hash(self, password: str) -> str:
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                message=f"Password must be at most {MAX_PASSWORD_BYTES} bytes long",
                field="password",
            )
        return await asyncio.to_thread(self._hash, password)

    async def verify(self, password: Optional[str], password_hash: str) -> bool:
        """True when `password` matches `password_hash`; a missing password never matches."""
        if not password:
            return False
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            # No stored hash can come from a password this long
            return False
        return await asyncio.to_thread(self._check, password, password_hash)


password_hasher = PasswordHasher()
