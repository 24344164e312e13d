from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass
from threading import Lock
import time
from typing import Deque

from fastapi import HTTPException, Request, status

from app.core.config import Settings, get_settings


@dataclass(frozen=True)
class RateLimitPolicy:
    scope: str
    limit: int
    window_seconds: int


def auth_policies(settings: Settings) -> dict[str, RateLimitPolicy]:
    window = settings.auth_rate_limit_window_seconds
    return {
        "auth.register": RateLimitPolicy("auth.register", settings.auth_rate_limit_register_max_requests, window),
        "auth.login": RateLimitPolicy("auth.login", settings.auth_rate_limit_login_max_requests, window),
    }


class SlidingWindowRateLimiter:
    def __init__(self, sweep_every: int = 256) -> None:
        self._hits: dict[str, Deque[float]] = defaultdict(deque)
        self._windows: dict[str, int] = {}
        self._lock = Lock()
        self._sweep_every = sweep_every
        self._since_sweep = 0

    def hit(self, key: str, policy: RateLimitPolicy) -> int | None:
        """Record one request; return seconds to wait when over the limit."""
        now = time.monotonic()
        earliest = now - policy.window_seconds
        with self._lock:
            bucket = self._hits[key]
            while bucket and bucket[0] < earliest:
                bucket.popleft()
            if len(bucket) >= policy.limit:
                return max(1, int(bucket[0] + policy.window_seconds - now))
            bucket.append(now)
            self._windows[key] = policy.window_seconds
            self._since_sweep += 1
            if self._since_sweep >= self._sweep_every:
                self._sweep(now)
        return None

    def _sweep(self, now: float) -> None:
        # Caller holds the lock.
        self._since_sweep = 0
        for key in list(self._hits):
            bucket = self._hits[key]
            if not bucket or bucket[-1] < now - self._windows.get(key, 0):
                del self._hits[key]
                self._windows.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._hits)

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()
            self._windows.clear()
            self._since_sweep = 0


_limiter = SlidingWindowRateLimiter()


def _client_address(request: Request) -> str:
    # Only honour X-Forwarded-For behind a proxy that overwrites it.
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded and get_settings().rate_limit_trust_forwarded_for:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_rate_limit(request: Request, policy: RateLimitPolicy, identity: str | None = None) -> None:
    key = "|".join((policy.scope, _client_address(request), (identity or "").strip().lower()))
    retry_after = _limiter.hit(key, policy)
    if retry_after is None:
        return
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=f"Too many requests for {policy.scope}. Try again in {retry_after} second(s).",
        headers={"Retry-After": str(retry_after)},
    )


def clear_rate_limiter() -> None:
    _limiter.clear()
