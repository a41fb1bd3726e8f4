"""
Tests for the in-memory rate limiter.

Tests: RateLimiter sliding window and the rate_limit() dependency.
"""
from types import SimpleNamespace

import pytest

from domain.errors import RateLimitError
from middleware.rate_limit import RateLimiter, rate_limit


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRateLimiter:
    """Tests for the RateLimiter class."""

    @pytest.mark.unit
    def test_allows_requests_under_limit(self):
        limiter = RateLimiter()
        for _ in range(5):
            assert limiter.check("testkey", max_requests=5, window_seconds=60) is True

    @pytest.mark.unit
    def test_blocks_requests_over_limit(self):
        limiter = RateLimiter()
        for _ in range(3):
            limiter.check("testkey", max_requests=3, window_seconds=60)
        assert limiter.check("testkey", max_requests=3, window_seconds=60) is False

    @pytest.mark.unit
    def test_different_keys_independent(self):
        limiter = RateLimiter()
        for _ in range(3):
            limiter.check("10.0.0.1:/auth/login", max_requests=3, window_seconds=60)
        assert limiter.check("10.0.0.1:/auth/login", max_requests=3, window_seconds=60) is False
        assert limiter.check("10.0.0.2:/auth/login", max_requests=3, window_seconds=60) is True

    @pytest.mark.unit
    def test_window_slides(self):
        """Old hits drop out of the window one at a time."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("k", max_requests=2, window_seconds=10)
        clock.now += 5
        limiter.check("k", max_requests=2, window_seconds=10)
        assert limiter.check("k", max_requests=2, window_seconds=10) is False

        clock.now += 5  # first hit is now exactly at the window edge
        assert limiter.check("k", max_requests=2, window_seconds=10) is True
        assert limiter.check("k", max_requests=2, window_seconds=10) is False

    @pytest.mark.unit
    def test_remaining_count(self):
        limiter = RateLimiter()
        assert limiter.remaining("testkey", max_requests=5, window_seconds=60) == 5
        limiter.check("testkey", max_requests=5, window_seconds=60)
        limiter.check("testkey", max_requests=5, window_seconds=60)
        assert limiter.remaining("testkey", max_requests=5, window_seconds=60) == 3

    @pytest.mark.unit
    def test_remaining_never_negative(self):
        limiter = RateLimiter()
        for _ in range(7):
            limiter.check("testkey", max_requests=5, window_seconds=60)
        assert limiter.remaining("testkey", max_requests=5, window_seconds=60) == 0

    @pytest.mark.unit
    def test_single_request_limit(self):
        limiter = RateLimiter()
        assert limiter.check("once", max_requests=1, window_seconds=60) is True
        assert limiter.check("once", max_requests=1, window_seconds=60) is False

    @pytest.mark.unit
    def test_reset_clears_all_keys(self):
        limiter = RateLimiter()
        limiter.check("a", max_requests=1, window_seconds=60)
        limiter.reset()
        assert limiter.check("a", max_requests=1, window_seconds=60) is True

    @pytest.mark.unit
    def test_expired_keys_are_dropped(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("10.0.0.1:/auth/login", max_requests=3, window_seconds=10)
        limiter.check("10.0.0.2:/auth/login", max_requests=3, window_seconds=10)
        assert limiter.tracked_keys() == 2

        clock.now += 11
        assert limiter.remaining("10.0.0.1:/auth/login", max_requests=3, window_seconds=10) == 3
        assert limiter.tracked_keys() == 1
        assert limiter.check("10.0.0.2:/auth/login", max_requests=3, window_seconds=10) is True
        assert limiter.tracked_keys() == 1
        assert limiter.remaining("10.0.0.2:/auth/login", max_requests=3, window_seconds=10) == 2


class TestRateLimitDependency:

    @staticmethod
    def _request(host="127.0.0.1", path="/auth/login"):
        return SimpleNamespace(client=SimpleNamespace(host=host), url=SimpleNamespace(path=path))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_raises_429_when_exhausted(self):
        check = rate_limit(2, 60)
        await check(self._request())
        await check(self._request())
        with pytest.raises(RateLimitError) as exc_info:
            await check(self._request())
        assert exc_info.value.status_code == 429
        assert exc_info.value.details == {"retryAfter": 60, "limit": 2}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_paths_counted_separately(self):
        check = rate_limit(1, 60)
        await check(self._request(path="/auth/login"))
        await check(self._request(path="/auth/register"))

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_client_uses_shared_key(self):
        check = rate_limit(1, 60)
        request = SimpleNamespace(client=None, url=SimpleNamespace(path="/auth/login"))
        await check(request)
        with pytest.raises(RateLimitError):
            await check(request)
