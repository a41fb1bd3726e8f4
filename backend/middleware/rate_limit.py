"""
In-memory rate limiting for the public auth endpoints.

Sliding window of request timestamps per (client IP, path). Per-process only:
several workers each keep their own window.
"""
import time
import logging
from collections import deque

from fastapi import Request

from domain.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window counter keyed by an arbitrary string."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    def _evict(self, key: str, window_seconds: float) -> deque[float]:
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        cutoff = self._clock() - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def check(self, key: str, max_requests: int, window_seconds: float) -> bool:
        """Record a hit and return True, or return False if the window is full."""
        hits = self._evict(key, window_seconds)
        if len(hits) >= max_requests:
            return False
        self._hits.setdefault(key, hits).append(self._clock())
        return True

    def remaining(self, key: str, max_requests: int, window_seconds: float) -> int:
        return max(0, max_requests - len(self._evict(key, window_seconds)))

    def tracked_keys(self) -> int:
        return len(self._hits)

    def reset(self):
        self._hits.clear()


# Global rate limiter instance
_limiter = RateLimiter()


def get_limiter() -> RateLimiter:
    return _limiter


def rate_limit(max_requests: int = 10, window_seconds: int = 60):
    """
    FastAPI dependency factory.

    Usage:
        @router.post("/auth/login", dependencies=[Depends(rate_limit(10, 60))])
    """
    async def _check_rate_limit(request: Request):
        client_ip = request.client.host if request.client else "unknown"
        key = f"{client_ip}:{request.url.path}"

        if not _limiter.check(key, max_requests, window_seconds):
            logger.warning(
                f"Rate limit exceeded: {client_ip} on {request.url.path} "
                f"({max_requests}/{window_seconds}s)"
            )
            raise RateLimitError(
                f"Too many requests. Maximum {max_requests} per {window_seconds} seconds.",
                details={"retryAfter": window_seconds, "limit": max_requests},
            )

    return _check_rate_limit
