"""
SafeNote Backend — Password Hasher Tests
==========================================

What:  Tests for bcrypt hashing and verification.
How:   Real bcrypt at the minimum cost factor (rounds=4).

What we test:
    ✅ Hashes are salted bcrypt strings, never the plaintext
    ✅ Correct password verifies; wrong, empty or missing ones don't
    ✅ Malformed stored hashes fail closed
    ✅ Passwords over bcrypt's 72-byte limit are rejected
    ✅ Over-long passwords fail verification without reaching bcrypt
"""

import logging
from unittest.mock import patch

import pytest

from app.exceptions import ValidationError
from app.services.password_hasher import MAX_PASSWORD_BYTES, PasswordHasher


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


class TestPasswordHasher:

    @pytest.mark.asyncio
    async def test_hash_is_bcrypt(self, hasher):
        hashed = await hasher.hash("hunter2")

        assert hashed != "hunter2"
        assert hashed.startswith("$2b$04$")

    @pytest.mark.asyncio
    async def test_hashes_are_salted(self, hasher):
        assert await hasher.hash("same") != await hasher.hash("same")

    @pytest.mark.asyncio
    async def test_verify_roundtrip(self, hasher):
        hashed = await hasher.hash("hunter2")

        assert await hasher.verify("hunter2", hashed) is True
        assert await hasher.verify("hunter3", hashed) is False

    @pytest.mark.asyncio
    async def test_missing_password_never_matches(self, hasher):
        hashed = await hasher.hash("hunter2")

        assert await hasher.verify("", hashed) is False
        assert await hasher.verify(None, hashed) is False

    @pytest.mark.asyncio
    async def test_unicode_password(self, hasher):
        hashed = await hasher.hash("пароль🔒")
        assert await hasher.verify("пароль🔒", hashed) is True

    @pytest.mark.asyncio
    async def test_malformed_hash_fails_closed(self, hasher):
        # unsalted SHA-256 hex digest of "hunter2"
        legacy = "f52fbd32b2b3b86ff88ef6c490628285f482af15ddcb29541f94bcf526a3f6c7"
        assert await hasher.verify("hunter2", legacy) is False

    @pytest.mark.asyncio
    async def test_over_long_password_rejected(self, hasher):
        with pytest.raises(ValidationError) as exc_info:
            await hasher.hash("x" * (MAX_PASSWORD_BYTES + 1))
        assert exc_info.value.field == "password"

    @pytest.mark.asyncio
    async def test_max_length_password_accepted(self, hasher):
        password = "x" * MAX_PASSWORD_BYTES
        hashed = await hasher.hash(password)
        assert await hasher.verify(password, hashed) is True

    @pytest.mark.asyncio
    async def test_over_long_password_never_matches(self, hasher, caplog):
        hashed = await hasher.hash("hunter2")

        with patch("app.services.password_hasher.bcrypt.checkpw") as mock_checkpw, \
             caplog.at_level(logging.WARNING, logger="app.services.password_hasher"):
            assert await hasher.verify("x" * 100, hashed) is False

        mock_checkpw.assert_not_called()
        assert "unrecognized format" not in caplog.text
