"""Counter store backends for the fixed-window rate limiter.

Two backends are provided:

- InMemoryCounterStore: single-process store guarded by an asyncio lock.
  Atomic only with respect to other tasks in the same process, which is
  acceptable for development and single-instance deployments.
- RedisCounterStore: shared store whose operations run as Lua scripts,
  atomic across every instance talking to the same Redis.
"""

import asyncio
import math
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Optional

import redis
import redis.asyncio as aioredis

from guard.app.core.logging import get_logger
from guard.app.exceptions import CounterStoreUnavailableError
from guard.app.services.rate_limit.models import RateLimitRecord
from guard.app.services.rate_limit.redis_lua import (
    CHECK_AND_CONSUME_SCRIPT,
    GET_OR_CREATE_SCRIPT,
    INCREMENT_SCRIPT,
)

logger = get_logger(__name__)


class CounterStore(ABC):
    """Keyed store of rate-limit records.

    Keys are opaque strings composed by the caller. Implementations must
    make each method atomic for a given key.

    ``get_or_create`` and ``increment`` are the general counter primitives
    for callers that read and bump separately. ``RateLimiter.check`` uses
    only ``check_and_consume``, which fuses the two so a denied request
    never increments.
    """

    @abstractmethod
    async def get_or_create(
        self, key: str, window_seconds: int, now: float
    ) -> RateLimitRecord:
        """Return the live record for ``key``.

        An absent or expired record is replaced by an empty one
        (count 0) whose window ends at ``now + window_seconds``.
        """

    @abstractmethod
    async def increment(self, key: str) -> RateLimitRecord:
        """Increment the count of an existing record.

        Raises:
            KeyError: If no record exists for ``key``
        """

    @abstractmethod
    async def check_and_consume(
        self, key: str, max_requests: int, window_seconds: int, now: float
    ) -> tuple[RateLimitRecord, bool]:
        """Consume one request from the window for ``key`` if quota remains.

        Opens a fresh window with count 1 when the record is absent or
        expired. At the ceiling the record is returned unchanged and the
        second element is False.
        """

    async def cleanup(self, now: float) -> int:
        """Drop expired records. Returns the number removed."""
        return 0

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryCounterStore(CounterStore):
    """Process-local counter store.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    - cleanup() removes expired windows
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._max_entries = max_entries
        self._records: OrderedDict[str, RateLimitRecord] = OrderedDict()
        self._lock = asyncio.Lock()

    def _enforce_lru_limit(self) -> None:
        if len(self._records) >= self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(min(remove_count, len(self._records))):
                self._records.popitem(last=False)

    def _live_record(self, key: str, window_seconds: int, now: float) -> RateLimitRecord:
        record = self._records.get(key)
        if record is not None and not record.is_expired(now):
            self._records.move_to_end(key)
            return record
        if record is None:
            self._enforce_lru_limit()
        record = RateLimitRecord(count=0, window_reset_at=now + window_seconds)
        self._records[key] = record
        self._records.move_to_end(key)
        return record

    async def get_or_create(
        self, key: str, window_seconds: int, now: float
    ) -> RateLimitRecord:
        async with self._lock:
            record = self._live_record(key, window_seconds, now)
            return replace(record)

    async def increment(self, key: str) -> RateLimitRecord:
        async with self._lock:
            record = self._records[key]
            record.count += 1
            return replace(record)

    async def check_and_consume(
        self, key: str, max_requests: int, window_seconds: int, now: float
    ) -> tuple[RateLimitRecord, bool]:
        async with self._lock:
            record = self._live_record(key, window_seconds, now)
            if record.count >= max_requests:
                return replace(record), False
            record.count += 1
            return replace(record), True

    async def cleanup(self, now: float) -> int:
        async with self._lock:
            expired = [key for key, record in self._records.items() if record.is_expired(now)]
            for key in expired:
                del self._records[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._records)


class RedisCounterStore(CounterStore):
    """Redis-backed counter store for multi-instance deployments.

    Every operation is a single Lua script invocation. Connection errors,
    timeouts and other Redis failures are raised as
    CounterStoreUnavailableError so the limiter can apply its
    unavailability policy.
    """

    KEY_PREFIX = "ratelimit"
    EXPIRY_GRACE_MS = 1000

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
    ):
        """Initialize Redis counter store.

        Args:
            redis_client: Optional Redis client instance
            redis_url: Redis connection URL, used when no client is given
        """
        self._redis = redis_client
        self._redis_url = redis_url

    def _get_redis(self) -> Any:
        if self._redis is None:
            if not self._redis_url:
                raise CounterStoreUnavailableError("not_configured")
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}:{key}"

    @staticmethod
    def _to_ms(seconds: float) -> int:
        return int(math.floor(seconds * 1000))

    async def _eval(self, script: str, key: str, *args: Any) -> Any:
        try:
            return await self._get_redis().eval(script, 1, self._make_key(key), *args)
        except redis.ConnectionError as e:
            logger.error(f"Redis connection failed: {e}")
            raise CounterStoreUnavailableError("connection_error", str(e)) from e
        except redis.TimeoutError as e:
            logger.warning(f"Redis timeout: {e}")
            raise CounterStoreUnavailableError("timeout", str(e)) from e
        except redis.RedisError as e:
            logger.error(f"Redis error: {e}")
            raise CounterStoreUnavailableError("redis_error", str(e)) from e
        except OSError as e:
            logger.error(f"Redis socket error: {e}")
            raise CounterStoreUnavailableError("connection_error", str(e)) from e

    async def get_or_create(
        self, key: str, window_seconds: int, now: float
    ) -> RateLimitRecord:
        result = await self._eval(
            GET_OR_CREATE_SCRIPT,
            key,
            window_seconds * 1000,
            self._to_ms(now),
            self.EXPIRY_GRACE_MS,
        )
        return RateLimitRecord(count=int(result[0]), window_reset_at=int(result[1]) / 1000)

    async def increment(self, key: str) -> RateLimitRecord:
        result = await self._eval(INCREMENT_SCRIPT, key)
        if not result:
            raise KeyError(key)
        return RateLimitRecord(count=int(result[0]), window_reset_at=int(result[1]) / 1000)

    async def check_and_consume(
        self, key: str, max_requests: int, window_seconds: int, now: float
    ) -> tuple[RateLimitRecord, bool]:
        result = await self._eval(
            CHECK_AND_CONSUME_SCRIPT,
            key,
            max_requests,
            window_seconds * 1000,
            self._to_ms(now),
            self.EXPIRY_GRACE_MS,
        )
        record = RateLimitRecord(count=int(result[1]), window_reset_at=int(result[2]) / 1000)
        return record, bool(result[0])

    async def close(self) -> None:
        if self._redis is not None:
            try:
                await self._redis.aclose()
            except (redis.RedisError, OSError) as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._redis = None
