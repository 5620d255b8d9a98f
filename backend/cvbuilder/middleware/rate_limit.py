# cvbuilder/middleware/rate_limit.py
"""
Fixed-window rate limiting with a pluggable counter store.

The limiter only knows about actions and identifiers; where counters live is
decided by the RateLimitStore handed to it. Redis is used when REDIS_URL is
configured, otherwise a process-local in-memory store.
"""
import logging
import math
import threading
import time
from typing import Callable, Dict, NamedTuple, Optional, Protocol, Tuple

import redis.asyncio as redis
from fastapi import Depends, HTTPException, Request, status

from cvbuilder.core.config import settings
from cvbuilder.core.metrics import rate_limit_rejections_total

logger = logging.getLogger(__name__)


class RateLimitRule(NamedTuple):
    max_requests: int
    window_seconds: int


RATE_LIMITS: Dict[str, RateLimitRule] = {
    "register": RateLimitRule(3, 300),
    "cv_create": RateLimitRule(10, 60),
    "pdf_generate": RateLimitRule(5, 60),
    "cv_update": RateLimitRule(20, 60),
    "download": RateLimitRule(15, 60),
    "general": RateLimitRule(100, 60),
}


class RateLimitDecision(NamedTuple):
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets (never negative)."""
        return max(math.ceil(self.reset_at - time.time()), 0)


class RateLimitStore(Protocol):
    """Counter backend: one counter per key, expiring with its window."""

    async def increment(self, key: str, window_seconds: int) -> Tuple[int, float]:
        """Count a hit and return (count in current window, reset time as epoch seconds)."""
        ...

    async def reset(self, key: str) -> None:
        ...

    async def close(self) -> None:
        ...


class InMemoryRateLimitStore:
    """Process-local store. Not shared between workers."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._earliest_reset = math.inf
        self._lock = threading.Lock()

    @property
    def window_count(self) -> int:
        return len(self._windows)

    def _evict_expired(self, now: float) -> None:
        self._windows = {key: window for key, window in self._windows.items() if window[1] > now}
        self._earliest_reset = min((reset_at for _, reset_at in self._windows.values()), default=math.inf)

    async def increment(self, key: str, window_seconds: int) -> Tuple[int, float]:
        now = self._clock()
        with self._lock:
            # Sweep only once some window has actually expired
            if now >= self._earliest_reset:
                self._evict_expired(now)

            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
            self._earliest_reset = min(self._earliest_reset, reset_at)
        return count, reset_at

    async def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    async def close(self) -> None:
        with self._lock:
            self._windows.clear()
            self._earliest_reset = math.inf


class RedisRateLimitStore:
    """Shared store backed by Redis INCR with a millisecond expiry per window."""

    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, max_connections: int = 50) -> "RedisRateLimitStore":
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=max_connections
        )
        return cls(client)

    async def increment(self, key: str, window_seconds: int) -> Tuple[int, float]:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.pttl(key)
            count, ttl_ms = await pipe.execute()

        # -1: no expiry yet, this INCR opened the window
        if ttl_ms is None or int(ttl_ms) < 0:
            ttl_ms = window_seconds * 1000
            await self.client.pexpire(key, ttl_ms)

        return int(count), time.time() + int(ttl_ms) / 1000

    async def reset(self, key: str) -> None:
        await self.client.delete(key)

    async def close(self) -> None:
        await self.client.aclose()


class RateLimiter:
    """
    Applies RATE_LIMITS to identifiers using an injected store.

    Store failures never block traffic: the hit is logged and allowed.
    """

    def __init__(self, store: RateLimitStore, enabled: Optional[bool] = None):
        self.store = store
        self.enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled

    @staticmethod
    def rule_for(action: str) -> RateLimitRule:
        rule = RATE_LIMITS.get(action)
        if rule is None:
            logger.warning(f"Unknown rate limit action '{action}', using 'general'")
            rule = RATE_LIMITS["general"]
        return rule

    async def hit(self, identifier: str, action: str) -> RateLimitDecision:
        """
        Count one request for identifier under action.

        Args:
            identifier: Client key, e.g. "ip:203.0.113.7"
            action: Name from RATE_LIMITS

        Returns:
            RateLimitDecision for this request
        """
        rule = self.rule_for(action)
        if not self.enabled:
            return RateLimitDecision(True, rule.max_requests, rule.max_requests, time.time())

        key = f"rate_limit:{action}:{identifier}"
        try:
            count, reset_at = await self.store.increment(key, rule.window_seconds)
        except Exception as e:
            logger.error(f"Rate limit store failed for {action}: {e}")
            return RateLimitDecision(True, rule.max_requests, rule.max_requests, time.time())

        return RateLimitDecision(
            allowed=count <= rule.max_requests,
            limit=rule.max_requests,
            remaining=max(rule.max_requests - count, 0),
            reset_at=reset_at,
        )

    async def reset(self, identifier: str, action: str) -> None:
        await self.store.reset(f"rate_limit:{action}:{identifier}")

    async def close(self) -> None:
        await self.store.close()


def build_rate_limiter() -> RateLimiter:
    """Pick the store from settings: Redis when REDIS_URL is set, else memory."""
    if settings.REDIS_URL:
        logger.info("Using Redis for rate limiting")
        store = RedisRateLimitStore.from_url(settings.REDIS_URL, settings.REDIS_MAX_CONNECTIONS)
    else:
        logger.warning("REDIS_URL not set, using in-memory rate limiting")
        store = InMemoryRateLimitStore()
    return RateLimiter(store)


def get_rate_limiter() -> RateLimiter:
    """Get singleton rate limiter instance."""
    if not hasattr(get_rate_limiter, '_instance'):
        get_rate_limiter._instance = build_rate_limiter()
    return get_rate_limiter._instance


def get_client_identifier(request: Request) -> str:
    """Client key from the first X-Forwarded-For hop, X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and forwarded.split(",")[0].strip():
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.headers.get("x-real-ip") or (request.client.host if request.client else "unknown")
    return f"ip:{ip}"


async def check_rate_limit(
    request: Request,
    action: str,
    limiter: Optional[RateLimiter] = None
) -> RateLimitDecision:
    """
    Enforce the rate limit for action on this request.

    Raises:
        HTTPException: 429 with Retry-After and X-RateLimit-* headers
    """
    limiter = limiter or get_rate_limiter()
    decision = await limiter.hit(get_client_identifier(request), action)

    if not decision.allowed:
        rate_limit_rejections_total.labels(action=action).inc()
        retry_after = decision.retry_after
        logger.warning(f"Rate limit exceeded for {action}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(decision.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(decision.reset_at))
            }
        )

    return decision


def rate_limit(action: str):
    """FastAPI dependency factory: ``Depends(rate_limit("cv_create"))``."""

    async def dependency(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter)
    ) -> RateLimitDecision:
        return await check_rate_limit(request, action, limiter)

    return dependency
