from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from threading import Lock
from time import monotonic
from typing import Iterable, Protocol

import redis

_LOG = logging.getLogger("app.rate_limit")

PASSWORD_KEY_PREFIX = "inquiry:verify"


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    current_value: int


class RateLimiter(Protocol):
    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        ...


class InMemoryRateLimiter:
    """Fixed-window counters for one process. Expired windows are swept on access."""

    def __init__(self, sweep_interval_seconds: float = 30.0):
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = Lock()
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep_at = 0.0

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        if now < self._next_sweep_at:
            return
        for key in [k for k, (_, ends_at) in self._windows.items() if ends_at <= now]:
            del self._windows[key]
        self._next_sweep_at = now + self._sweep_interval

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        now = monotonic()
        with self._lock:
            self._sweep(now)
            count, ends_at = self._windows.get(key, (0, 0.0))
            if ends_at <= now:
                count, ends_at = 0, now + max(int(window_seconds), 1)
            count += 1
            self._windows[key] = (count, ends_at)
        return RateLimitResult(
            allowed=count <= limit,
            retry_after_seconds=max(int(ends_at - now), 0),
            current_value=count,
        )


class RedisRateLimiter:
    """Fixed-window counters shared by every API worker."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        window = max(int(window_seconds), 1)
        pipe = self.client.pipeline()
        # SET NX opens the window once; later hits only count.
        pipe.set(key, 0, ex=window, nx=True)
        pipe.incr(key)
        pipe.ttl(key)
        _, count, ttl = pipe.execute()
        ttl = int(ttl) if int(ttl) >= 0 else window
        return RateLimitResult(allowed=int(count) <= limit, retry_after_seconds=ttl, current_value=int(count))


def hashed_key_part(value: str | None) -> str:
    raw = str(value or "").strip()
    if not raw:
        return "-"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:20]


def password_attempt_keys(*, client_ip: str, inquiry_id: int) -> list[str]:
    """One counter per client address and one per inquiry, so spreading guesses over IPs does not help."""
    return [
        f"{PASSWORD_KEY_PREFIX}:ip:{hashed_key_part(client_ip)}",
        f"{PASSWORD_KEY_PREFIX}:id:{int(inquiry_id)}",
    ]


def first_blocked(
    limiter: RateLimiter, keys: Iterable[str], *, limit: int, window_seconds: int
) -> RateLimitResult | None:
    for key in keys:
        result = limiter.hit(key, limit=limit, window_seconds=window_seconds)
        if not result.allowed:
            return result
    return None


def build_rate_limiter(redis_url: str | None) -> RateLimiter:
    url = str(redis_url or "").strip()
    if not url:
        return InMemoryRateLimiter()
    client = redis.Redis.from_url(url, decode_responses=True, socket_timeout=0.4, socket_connect_timeout=0.4)
    try:
        client.ping()
    except redis.RedisError:
        _LOG.warning("Redis at REDIS_URL is unreachable; password attempts are counted per process")
        return InMemoryRateLimiter()
    return RedisRateLimiter(client)
