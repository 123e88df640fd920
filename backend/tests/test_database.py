"""
SafeNote Backend — Database Startup Tests
===========================================

What:  Tests for the startup connection check and the lifespan's failure policy.
How:   A fresh in-memory SQLite engine for the happy path; a mock engine whose
       connect() always fails for the retry path. Retry waits are zero in tests
       (DB_CONNECT_RETRY_*_WAIT=0 in conftest.py).

What we test:
    ✅ Reachable database passes; DB_CREATE_TABLES creates the notes table
    ✅ Unreachable database is retried DB_CONNECT_MAX_ATTEMPTS times, then raises
    ✅ Startup aborts (lifespan raises) when the database never comes up
    ✅ Backoff grows exponentially, is capped, and builds without warnings
"""

import warnings
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.database import _connect_wait, init_database


class TestInitDatabase:

    @pytest.mark.asyncio
    async def test_creates_tables_when_enabled(self, monkeypatch):
        monkeypatch.setattr(settings, "db_create_tables", True)
        engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
        try:
            await init_database(engine)

            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        finally:
            await engine.dispose()

        assert "notes" in tables

    @pytest.mark.asyncio
    async def test_leaves_schema_alone_by_default(self, monkeypatch):
        monkeypatch.setattr(settings, "db_create_tables", False)
        engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
        try:
            await init_database(engine)

            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        finally:
            await engine.dispose()

        assert tables == []

    @pytest.mark.asyncio
    async def test_unreachable_database_retried_then_raised(self):
        engine = MagicMock()
        engine.connect.side_effect = OSError("connection refused")

        with pytest.raises(OSError):
            await init_database(engine)

        assert engine.connect.call_count == settings.db_connect_max_attempts


class TestConnectBackoff:

    def _waits(self, attempt):
        return _connect_wait()(MagicMock(attempt_number=attempt))

    def test_builds_without_deprecation_warnings(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            _connect_wait()

    def test_zero_waits_in_tests(self):
        assert self._waits(1) == 0
        assert self._waits(5) == 0

    def test_exponential_and_capped(self, monkeypatch):
        monkeypatch.setattr(settings, "db_connect_retry_min_wait", 1.0)
        monkeypatch.setattr(settings, "db_connect_retry_max_wait", 10.0)

        # base 1 * 2^(n-1), capped at 10, plus up to 1s jitter
        assert 1.0 <= self._waits(1) <= 2.0
        assert 4.0 <= self._waits(3) <= 5.0
        assert 10.0 <= self._waits(8) <= 11.0


class TestLifespan:

    @pytest.mark.asyncio
    async def test_startup_aborts_without_database(self):
        from app.main import create_app, lifespan

        with patch("app.main.setup_logging"), \
             patch("app.main.init_database", AsyncMock(side_effect=OSError("refused"))), \
             patch("app.main.dispose_engine", AsyncMock()) as mock_dispose:
            with pytest.raises(OSError):
                async with lifespan(create_app()):
                    pass

        mock_dispose.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_shutdown_disposes_engine(self):
        from app.main import create_app, lifespan

        with patch("app.main.setup_logging"), \
             patch("app.main.init_database", AsyncMock()), \
             patch("app.main.dispose_engine", AsyncMock()) as mock_dispose:
            async with lifespan(create_app()):
                pass

        mock_dispose.assert_awaited_once()
