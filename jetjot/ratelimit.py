"""
Fixed-window login rate limiting.

Each tracked identity has a window `{attempts, window_start}`. A window
resets only once it is `window_seconds` old, so a burst straddling the
boundary can admit up to twice `max_attempts`; that is accepted.

Windows live in a `WindowStore`: in memory for tests/local runs, or Redis
so every API worker shares the same counters.
"""

from __future__ import annotations

import json
import math
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from jetjot.errors import BackendUnavailable, RateLimited

GLOBAL_IDENTITY = "global"


@dataclass
class Window:
    attempts: int
    window_start: float


@dataclass
class RateLimitStatus:
    attempts: int
    remaining: int
    resets_at: Optional[datetime] = None


class WindowStore(Protocol):
    """Minimal key/value interface for rate-limit windows."""

    def get(self, key: str) -> Optional[Window]:
        ...

    def set(self, key: str, window: Window, ttl_seconds: float) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryWindowStore:
    """Dict-backed window store for testing/dev."""

    windows: Dict[str, Window] = field(default_factory=dict)

    def get(self, key: str) -> Optional[Window]:
        return self.windows.get(key)

    def set(self, key: str, window: Window, ttl_seconds: float) -> None:
        self.windows[key] = Window(window.attempts, window.window_start)

    def delete(self, key: str) -> None:
        self.windows.pop(key, None)


@dataclass
class RedisWindowStore:
    """Redis-backed window store; entries expire with their window."""

    url: str
    key_prefix: str = "jetjot:rl:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @contextmanager
    def _connection(self) -> Iterator[None]:
        try:
            yield
        except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError) as exc:
            # Connection resets can happen on managed Redis. Reconnect for the
            # next call but never let a lost read count as an empty window.
            self.client = redis.Redis.from_url(self.url)
            raise BackendUnavailable("Cannot reach the rate-limit store.") from exc

    def get(self, key: str) -> Optional[Window]:
        with self._connection():
            raw = self.client.get(self._key(key))
        if raw is None:
            return None
        try:
            return Window(**json.loads(raw))
        except (TypeError, ValueError):
            return None

    def set(self, key: str, window: Window, ttl_seconds: float) -> None:
        with self._connection():
            self.client.set(
                self._key(key),
                json.dumps(asdict(window)),
                px=max(1, int(ttl_seconds * 1000)),
            )

    def delete(self, key: str) -> None:
        with self._connection():
            self.client.delete(self._key(key))


class RateLimiter:
    """A single fixed-window counter family (one window per identity)."""

    def __init__(
        self,
        store: WindowStore,
        *,
        max_attempts: int,
        window_seconds: float,
        namespace: str,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.namespace = namespace
        self.clock = clock

    def _key(self, identity: str) -> str:
        return f"{self.namespace}:{identity}"

    def _live_window(self, identity: str, now: float) -> Optional[Window]:
        window = self.store.get(self._key(identity))
        if window is None or now - window.window_start >= self.window_seconds:
            return None
        return window

    def check(self, identity: str) -> None:
        """Count one attempt, or raise RateLimited if the window is full."""
        now = self.clock()
        window = self._live_window(identity, now) or Window(0, now)
        if window.attempts >= self.max_attempts:
            seconds_left = window.window_start + self.window_seconds - now
            raise RateLimited(max(1, math.ceil(seconds_left / 60)))
        window.attempts += 1
        self.store.set(
            self._key(identity),
            window,
            ttl_seconds=window.window_start + self.window_seconds - now,
        )

    def reset(self, identity: str) -> None:
        self.store.delete(self._key(identity))

    def status(self, identity: str) -> RateLimitStatus:
        window = self._live_window(identity, self.clock())
        if window is None:
            return RateLimitStatus(attempts=0, remaining=self.max_attempts)
        return RateLimitStatus(
            attempts=window.attempts,
            remaining=max(0, self.max_attempts - window.attempts),
            resets_at=datetime.fromtimestamp(
                window.window_start + self.window_seconds, tz=timezone.utc
            ),
        )


class LoginRateGuard:
    """
    Global limiter first, then the per-username one.

    The global window counts every attempt regardless of username, so a
    noisy client can lock out usernames it never touched.
    """

    def __init__(self, global_limiter: RateLimiter, user_limiter: RateLimiter):
        self.global_limiter = global_limiter
        self.user_limiter = user_limiter

    def check(self, username: str) -> None:
        self.global_limiter.check(GLOBAL_IDENTITY)
        self.user_limiter.check(username)

    def reset(self, username: str) -> None:
        self.user_limiter.reset(username)

    def status(self, username: str) -> RateLimitStatus:
        return self.user_limiter.status(username)


def build_login_guard(
    store: WindowStore,
    *,
    global_max: int = 15,
    global_window_seconds: float = 10 * 60,
    user_max: int = 5,
    user_window_seconds: float = 15 * 60,
    clock: Callable[[], float] = time.time,
) -> LoginRateGuard:
    return LoginRateGuard(
        RateLimiter(
            store,
            max_attempts=global_max,
            window_seconds=global_window_seconds,
            namespace="login-global",
            clock=clock,
        ),
        RateLimiter(
            store,
            max_attempts=user_max,
            window_seconds=user_window_seconds,
            namespace="login-user",
            clock=clock,
        ),
    )
