from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import redis
from redis.backoff import NoBackoff
from redis.retry import Retry

from budget_sync.errors import RateLimited
from budget_sync.utils.log import logger


@dataclass(frozen=True, slots=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0


@dataclass
class _Bucket:
    tokens: float
    updated_at: float
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _retry_after(per_seconds: float) -> int:
    return int(math.ceil(float(per_seconds)))


class RateLimiter:
    """
    Token-bucket admission control, one bucket per key.

    Keys should include both scope and identity (e.g. "login:203.0.113.7"), so each
    endpoint class gets its own capacity/window. Refill/consume is atomic per
    bucket; different buckets never contend on the same lock.

    With `redis_url` set, buckets live in Redis (shared across instances) and the
    in-process map is only used if Redis is unreachable.
    """

    def __init__(
        self,
        *,
        redis_url: str | None = None,
        clock: Callable[[], float] = time.monotonic,
        idle_ttl_s: int = 600,
    ) -> None:
        self.redis_url = redis_url
        self._clock = clock
        self._idle_ttl_s = int(idle_ttl_s)
        self._mem: dict[str, _Bucket] = {}
        self._map_lock = threading.Lock()
        self._redis_client: redis.Redis | None = None

    def _redis(self) -> redis.Redis | None:
        if not self.redis_url:
            return None
        if self._redis_client is None:
            # fail fast: an unreachable backend must not stall admission
            self._redis_client = redis.Redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=1.0,
                socket_connect_timeout=1.0,
                retry=Retry(NoBackoff(), 0),
            )
        return self._redis_client

    def _bucket(self, key: str, *, limit: int, now: float) -> _Bucket:
        b = self._mem.get(key)
        if b is not None:
            return b
        with self._map_lock:
            b = self._mem.get(key)
            if b is None:
                b = _Bucket(tokens=float(limit), updated_at=now)
                self._mem[key] = b
            return b

    def _check_redis(self, r: redis.Redis, key: str, *, limit: int, per_seconds: int) -> bool:
        # Redis is shared across hosts, so use wall-clock time here.
        now = time.time()
        rate = float(limit) / float(per_seconds)
        allowed = False

        def _tx(pipe: redis.client.Pipeline) -> None:
            nonlocal allowed
            tokens_s, ts_s = pipe.hmget(key, "tokens", "ts")
            tokens = float(tokens_s) if tokens_s is not None else float(limit)
            ts = float(ts_s) if ts_s is not None else now
            tokens = min(float(limit), tokens + max(0.0, now - ts) * rate)
            allowed = tokens >= 1.0
            if allowed:
                tokens -= 1.0
            pipe.multi()
            pipe.hset(key, mapping={"tokens": f"{tokens:.6f}", "ts": f"{now:.6f}"})
            pipe.expire(key, max(int(per_seconds) * 2, self._idle_ttl_s))

        r.transaction(_tx, key)
        return allowed

    def check(self, key: str, *, limit: int, per_seconds: int) -> RateDecision:
        r = self._redis()
        if r is not None:
            try:
                ok = self._check_redis(r, key, limit=limit, per_seconds=per_seconds)
                return RateDecision(allowed=ok, retry_after=0 if ok else _retry_after(per_seconds))
            except redis.RedisError as ex:
                logger.warning("redis_limiter_failed", error=str(ex))

        now = self._clock()
        rate = float(limit) / float(per_seconds)
        b = self._bucket(key, limit=limit, now=now)
        with b.lock:
            # refill
            b.tokens = min(float(limit), b.tokens + max(0.0, now - b.updated_at) * rate)
            b.updated_at = now
            if b.tokens < 1.0:
                return RateDecision(allowed=False, retry_after=_retry_after(per_seconds))
            b.tokens -= 1.0
        return RateDecision(allowed=True)

    def allow(self, key: str, *, limit: int, per_seconds: int) -> bool:
        return self.check(key, limit=limit, per_seconds=per_seconds).allowed

    def hit(self, key: str, *, limit: int, per_seconds: int) -> None:
        """
        Consume one token or raise RateLimited with the retry hint.
        """
        d = self.check(key, limit=limit, per_seconds=per_seconds)
        if not d.allowed:
            raise RateLimited(retry_after=d.retry_after)

    def purge_idle(self, *, max_idle_s: float | None = None) -> int:
        """
        Drop in-process buckets with no refill activity for `max_idle_s`.
        """
        idle = float(self._idle_ttl_s if max_idle_s is None else max_idle_s)
        cutoff = self._clock() - idle
        with self._map_lock:
            stale = [k for k, b in self._mem.items() if b.updated_at < cutoff]
            for k in stale:
                del self._mem[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._mem)
