"""
Fixed-window rate limiting.

- Counters live behind a RateLimitStore (in-memory by default, Redis when
  several processes must share one budget).
- Every check increments the window counter exactly once; a request is
  rejected when the post-increment count exceeds the policy limit.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional, Protocol, Tuple

from starlette.requests import Request


class RateLimitStore(Protocol):
    def increment(self, key: str, window_seconds: int) -> int:
        """Atomically bump the counter for `key` in its current window and return the new count."""
        ...


class InMemoryRateLimitStore:
    """Process-local windows; state is lost on restart."""

    SWEEP_EVERY = 1000

    def __init__(self, time_fn: Callable[[], float] = time.monotonic):
        self.time_fn = time_fn
        self.windows: Dict[str, Tuple[float, int, int]] = {}
        self._lock = threading.Lock()
        self._ops = 0

    def increment(self, key: str, window_seconds: int) -> int:
        with self._lock:
            now = self.time_fn()
            window_start, count, _ = self.windows.get(key, (now, 0, window_seconds))
            if now - window_start >= window_seconds:
                window_start, count = now, 0
            count += 1
            self.windows[key] = (window_start, count, window_seconds)

            self._ops += 1
            if self._ops >= self.SWEEP_EVERY:
                self._ops = 0
                self._sweep(now)
            return count

    def _sweep(self, now: float) -> None:
        expired = [k for k, (start, _, window) in self.windows.items() if now - start >= window]
        for k in expired:
            del self.windows[k]

    def reset(self) -> None:
        with self._lock:
            self.windows.clear()
            self._ops = 0


class RedisRateLimitStore:
    """Shared windows in Redis. The first hit in a window sets the TTL."""

    def __init__(self, client, prefix: str = "ratelimit"):
        self.client = client
        self.prefix = prefix

    def increment(self, key: str, window_seconds: int) -> int:
        name = f"{self.prefix}:{key}"
        pipe = self.client.pipeline(transaction=True)
        pipe.set(name, 0, ex=window_seconds, nx=True)
        pipe.incr(name)
        _, count = pipe.execute()
        return int(count)


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    limit: int
    window_seconds: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class FixedWindowLimiter:
    def __init__(self, store: RateLimitStore, policy: RateLimitPolicy):
        self.store = store
        self.policy = policy

    def hit(self, client_key: str) -> RateLimitDecision:
        count = self.store.increment(f"{self.policy.name}:{client_key}", self.policy.window_seconds)
        return RateLimitDecision(
            allowed=count <= self.policy.limit,
            count=count,
            limit=self.policy.limit,
            window_seconds=self.policy.window_seconds,
        )


def trusted_proxies(settings_obj) -> FrozenSet[str]:
    raw = getattr(settings_obj, "TRUSTED_PROXIES", "") or ""
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def client_identity(request: Request) -> str:
    """
    Rate-limit key for the caller: the peer address.

    X-Forwarded-For is only read when the peer is a configured trusted proxy
    (app.state.trusted_proxies). Hops are walked right to left and the first
    address that is not itself a trusted proxy wins, so a client cannot pick
    its own key by prepending values.
    """
    peer = request.client.host if request.client else "unknown"
    trusted = getattr(request.app.state, "trusted_proxies", None) or frozenset()
    if peer not in trusted:
        return peer

    hops = [hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return peer


def build_rate_limit_store(settings_obj, time_fn: Optional[Callable[[], float]] = None) -> RateLimitStore:
    backend = (getattr(settings_obj, "RATE_LIMIT_BACKEND", "memory") or "memory").lower()
    if backend == "redis":
        from redis import Redis

        timeout = getattr(settings_obj, "REDIS_TIMEOUT_SECONDS", 1.0)
        client = Redis.from_url(settings_obj.REDIS_URL, socket_timeout=timeout, socket_connect_timeout=timeout)
        return RedisRateLimitStore(client)
    return InMemoryRateLimitStore(time_fn=time_fn or time.monotonic)


def checkout_policy(settings_obj) -> RateLimitPolicy:
    return RateLimitPolicy("checkout", settings_obj.CHECKOUT_RATE_LIMIT, settings_obj.CHECKOUT_RATE_WINDOW_SECONDS)


def subscribe_policy(settings_obj) -> RateLimitPolicy:
    return RateLimitPolicy("subscribe", settings_obj.SUBSCRIBE_RATE_LIMIT, settings_obj.SUBSCRIBE_RATE_WINDOW_SECONDS)


def api_policy(settings_obj) -> Optional[RateLimitPolicy]:
    if settings_obj.API_RATE_LIMIT <= 0:
        return None
    return RateLimitPolicy("api", settings_obj.API_RATE_LIMIT, settings_obj.API_RATE_WINDOW_SECONDS)
