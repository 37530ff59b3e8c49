"""Failed sign-in throttling keyed by (username, client address).

Only failures are counted. Once ``max_failures`` land inside the sliding
window the key is locked until the oldest failure ages out; a successful
sign-in clears the key.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import deque
from typing import Optional, Protocol

from .settings import OfficeSettings, get_settings

logger = logging.getLogger("office_core.rate_limit")


class FailureCounter(Protocol):
    def add(self, key: str, window_seconds: int) -> None:
        ...

    def count(self, key: str, window_seconds: int) -> int:
        ...

    def clear(self, key: str) -> None:
        ...


class MemoryFailureCounter:
    """Per-process counter; fine for a single worker and for tests."""

    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def _prune(self, key: str, window_seconds: int) -> deque[float]:
        hits = self._hits.setdefault(key, deque())
        horizon = time.monotonic() - window_seconds
        while hits and hits[0] < horizon:
            hits.popleft()
        return hits

    def add(self, key: str, window_seconds: int) -> None:
        with self._lock:
            self._prune(key, window_seconds).append(time.monotonic())

    def count(self, key: str, window_seconds: int) -> int:
        with self._lock:
            return len(self._prune(key, window_seconds))

    def clear(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)


class RedisFailureCounter:
    """Counter shared by every worker through a Redis sorted set per key.

    ``fail_policy`` decides what a Redis outage means: ``open`` lets sign-ins
    through, ``closed`` locks everyone out, ``memory`` degrades to a
    per-process counter.
    """

    PREFIX = "office:login:failures:"

    def __init__(self, url: str, fail_policy: str = "open") -> None:
        from redis import Redis

        self._client = Redis.from_url(url, decode_responses=True)
        self._fail_policy = fail_policy
        self._fallback = MemoryFailureCounter() if fail_policy == "memory" else None

    def _degraded(self, op: str, exc: Exception) -> None:
        logger.error("Login throttle %s failed against Redis (policy=%s): %s", op, self._fail_policy, exc)

    def add(self, key: str, window_seconds: int) -> None:
        from redis.exceptions import RedisError

        now = time.time()
        try:
            with self._client.pipeline() as pipe:
                pipe.zadd(self.PREFIX + key, {f"{now:.6f}": now})
                pipe.expire(self.PREFIX + key, window_seconds)
                pipe.execute()
        except RedisError as exc:
            self._degraded("add", exc)
            if self._fallback is not None:
                self._fallback.add(key, window_seconds)

    def count(self, key: str, window_seconds: int) -> int:
        from redis.exceptions import RedisError

        now = time.time()
        try:
            with self._client.pipeline() as pipe:
                pipe.zremrangebyscore(self.PREFIX + key, "-inf", now - window_seconds)
                pipe.zcard(self.PREFIX + key)
                _, total = pipe.execute()
            return int(total)
        except RedisError as exc:
            self._degraded("count", exc)
            if self._fail_policy == "closed":
                return 10**9
            if self._fallback is not None:
                return self._fallback.count(key, window_seconds)
            return 0

    def clear(self, key: str) -> None:
        from redis.exceptions import RedisError

        try:
            self._client.delete(self.PREFIX + key)
        except RedisError as exc:
            self._degraded("clear", exc)
        if self._fallback is not None:
            self._fallback.clear(key)


class LoginThrottle:
    def __init__(self, counter: FailureCounter, *, window_seconds: int, max_failures: int) -> None:
        self.counter = counter
        self.window_seconds = window_seconds
        self.max_failures = max_failures

    @staticmethod
    def key(username: str, ip: str) -> str:
        return f"{(username or '').strip().lower()}|{ip or '-'}"

    def locked(self, key: str) -> bool:
        return self.counter.count(key, self.window_seconds) >= self.max_failures

    def record_failure(self, key: str) -> None:
        self.counter.add(key, self.window_seconds)

    def clear(self, key: str) -> None:
        self.counter.clear(key)


_counter: Optional[FailureCounter] = None
_counter_lock = threading.Lock()


def _build_counter(cfg: OfficeSettings) -> FailureCounter:
    backend = cfg.login_rate_limit_backend
    url = cfg.login_rate_limit_redis_url or os.environ.get("REDIS_URL")
    if backend == "auto":
        backend = "redis" if url else "memory"
    if backend == "redis":
        if not url:
            raise RuntimeError("LOGIN_RATE_LIMIT_REDIS_URL (or REDIS_URL) is required for the Redis login throttle.")
        logger.info("Login throttle uses Redis (policy=%s)", cfg.login_rate_limit_redis_policy)
        return RedisFailureCounter(url, fail_policy=cfg.login_rate_limit_redis_policy)
    logger.info("Login throttle uses the in-process counter")
    return MemoryFailureCounter()


def get_login_throttle(settings: Optional[OfficeSettings] = None) -> LoginThrottle:
    """Throttle over the process-wide counter, with limits read from current settings."""
    global _counter
    cfg = settings or get_settings()
    if _counter is None:
        with _counter_lock:
            if _counter is None:
                _counter = _build_counter(cfg)
    return LoginThrottle(
        _counter,
        window_seconds=cfg.login_rate_limit_window,
        max_failures=cfg.login_rate_limit_attempts,
    )


def reset_login_throttle() -> None:
    global _counter
    with _counter_lock:
        _counter = None
