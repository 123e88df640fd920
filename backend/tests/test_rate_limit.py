"""
SafeNote Backend — Rate Limiting Tests
========================================

What:  Tests for the sliding window limiter and the rule-based middleware.
How:   Limiter tests pass explicit timestamps; middleware tests mount tiny
       rules on a throwaway FastAPI app and drive it through ASGITransport.

What we test:
    ✅ Requests under the limit pass; the next one gets a retry delay
    ✅ The window slides: old hits expire
    ✅ Clients are counted independently; idle keys are cleaned up
    ✅ 429 responses carry Retry-After and the standard error body
    ✅ The password rule is stricter than, and counted apart from, the general one
    ✅ Health, docs and OPTIONS requests are never limited
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.middleware.rate_limit import (
    RateLimitMiddleware,
    RateLimitRule,
    SlidingWindowLimiter,
    build_default_rules,
)


class TestSlidingWindowLimiter:

    def test_allows_up_to_limit(self):
        limiter = SlidingWindowLimiter(limit=3, window=60)
        for i in range(3):
            assert limiter.check("1.1.1.1", now=100.0 + i) is None
            limiter.record("1.1.1.1", now=100.0 + i)

        assert limiter.check("1.1.1.1", now=103.0) is not None

    def test_retry_after_counts_to_oldest_expiry(self):
        limiter = SlidingWindowLimiter(limit=2, window=60)
        limiter.record("ip", now=100.0)
        limiter.record("ip", now=110.0)

        # oldest hit (t=100) leaves the window at t=160
        assert limiter.check("ip", now=130.0) == 31

    def test_window_slides(self):
        limiter = SlidingWindowLimiter(limit=1, window=10)
        limiter.record("ip", now=0.0)

        assert limiter.check("ip", now=5.0) is not None
        assert limiter.check("ip", now=10.5) is None

    def test_check_does_not_record(self):
        limiter = SlidingWindowLimiter(limit=1, window=10)
        for _ in range(5):
            assert limiter.check("ip", now=1.0) is None

    def test_keys_are_independent(self):
        limiter = SlidingWindowLimiter(limit=1, window=60)
        limiter.record("a", now=1.0)

        assert limiter.check("a", now=2.0) is not None
        assert limiter.check("b", now=2.0) is None

    def test_cleanup_drops_idle_keys(self):
        limiter = SlidingWindowLimiter(limit=5, window=10)
        limiter.record("old", now=0.0)
        limiter.record("fresh", now=15.0)

        limiter.cleanup(now=16.0)

        assert len(limiter) == 1
        assert limiter.check("fresh", now=16.0) is None


class TestRateLimitRule:

    def test_method_filter(self):
        rule = RateLimitRule(
            name="password",
            limiter=SlidingWindowLimiter(1, 60),
            path_pattern=r"^/api/notes/[^/]+/verify$",
            methods=frozenset({"POST"}),
        )
        assert rule.matches("POST", "/api/notes/abc/verify")
        assert not rule.matches("GET", "/api/notes/abc/verify")
        assert not rule.matches("POST", "/api/notes/abc")

    def test_default_rules(self):
        rules = {rule.name: rule for rule in build_default_rules()}

        assert rules["general"].matches("GET", "/api/notes/foo")
        assert not rules["general"].matches("GET", "/health")
        assert rules["password"].matches("POST", "/api/notes/foo/verify")
        assert rules["password"].matches("POST", "/api/notes/foo/set-password")
        assert not rules["password"].matches("POST", "/api/notes/foo/rename")
        assert rules["password"].limiter.limit < rules["general"].limiter.limit


def _make_app(general_limit: int, password_limit: int) -> FastAPI:
    app = FastAPI()

    @app.get("/api/notes/{note_id}")
    async def read(note_id: str):
        return {"ok": True}

    @app.post("/api/notes/{note_id}/verify")
    async def verify(note_id: str):
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    rules = [
        RateLimitRule("general", SlidingWindowLimiter(general_limit, 60), r"^/api/"),
        RateLimitRule(
            "password",
            SlidingWindowLimiter(password_limit, 60),
            r"^/api/notes/[^/]+/verify$",
            frozenset({"POST"}),
        ),
    ]
    app.add_middleware(RateLimitMiddleware, rules=rules)
    return app


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


class TestRateLimitMiddleware:

    @pytest.mark.asyncio
    async def test_exceeding_limit_returns_429(self):
        async with _client(_make_app(general_limit=2, password_limit=10)) as client:
            assert (await client.get("/api/notes/a")).status_code == 200
            assert (await client.get("/api/notes/b")).status_code == 200

            response = await client.get("/api/notes/c")

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        body = response.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["details"]["rule"] == "general"
        assert body["details"]["retry_after"] == int(response.headers["Retry-After"])

    @pytest.mark.asyncio
    async def test_password_rule_is_separate(self):
        async with _client(_make_app(general_limit=100, password_limit=2)) as client:
            for _ in range(2):
                assert (await client.post("/api/notes/x/verify")).status_code == 200

            blocked = await client.post("/api/notes/x/verify")
            still_ok = await client.get("/api/notes/x")

        assert blocked.status_code == 429
        assert blocked.json()["details"]["rule"] == "password"
        assert still_ok.status_code == 200

    @pytest.mark.asyncio
    async def test_rejected_requests_are_not_counted(self):
        """A request blocked by the password rule must not use up general quota."""
        async with _client(_make_app(general_limit=3, password_limit=1)) as client:
            assert (await client.post("/api/notes/x/verify")).status_code == 200
            for _ in range(5):
                assert (await client.post("/api/notes/x/verify")).status_code == 429

            # one general hit used so far; two left
            assert (await client.get("/api/notes/x")).status_code == 200
            assert (await client.get("/api/notes/x")).status_code == 200
            assert (await client.get("/api/notes/x")).status_code == 429

    @pytest.mark.asyncio
    async def test_health_never_limited(self):
        async with _client(_make_app(general_limit=1, password_limit=1)) as client:
            for _ in range(5):
                assert (await client.get("/health")).status_code == 200

    @pytest.mark.asyncio
    async def test_options_requests_not_counted(self):
        async with _client(_make_app(general_limit=1, password_limit=1)) as client:
            for _ in range(5):
                response = await client.options("/api/notes/x/verify")
                assert response.status_code != 429

            assert (await client.post("/api/notes/x/verify")).status_code == 200
