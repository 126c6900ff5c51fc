"""Fixed-window rate limiter.

Windows are fixed, not sliding: a burst straddling a window boundary can
be admitted up to twice the ceiling within a short span. Denied checks do
not consume quota, so a client hammering a closed window neither extends
nor resets it.
"""

import time
from typing import Callable, Literal, Optional

from guard.app.core.config import Settings, settings
from guard.app.core.logging import get_log_context, get_logger
from guard.app.exceptions import CounterStoreUnavailableError
from guard.app.services.rate_limit.backends import (
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
)
from guard.app.services.rate_limit.models import RateLimitResult
from guard.app.services.rate_limit.policies import PolicyRegistry, RateLimitPolicy

logger = get_logger(__name__)

OnUnavailable = Literal["allow", "deny"]


class RateLimiter:
    """Answers allow/deny for (identifier, policy) pairs.

    The counter store is injected; ``None`` means no store is configured,
    in which case every check takes the unavailable path.
    """

    def __init__(
        self,
        store: Optional[CounterStore],
        policies: PolicyRegistry,
        on_unavailable: OnUnavailable = "allow",
        unavailable_remaining: int = 999,
        require_shared_store: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize rate limiter.

        Args:
            store: Counter store, or None when none is configured
            policies: Tier lookup
            on_unavailable: Outcome when the store cannot be used
            unavailable_remaining: ``remaining`` reported by the permissive result
            require_shared_store: Strict-production flag; unavailability is
                then logged as a configuration error
            clock: Epoch-seconds clock
        """
        self._store = store
        self._policies = policies
        self._on_unavailable = on_unavailable
        self._unavailable_remaining = unavailable_remaining
        self._require_shared_store = require_shared_store
        self._clock = clock

    @property
    def policies(self) -> PolicyRegistry:
        return self._policies

    @property
    def store(self) -> Optional[CounterStore]:
        return self._store

    @staticmethod
    def make_key(policy: RateLimitPolicy, identifier: str) -> str:
        return f"{policy.name}:{identifier}"

    async def check(self, identifier: str, policy_name: str) -> RateLimitResult:
        """Consume one request for ``identifier`` under ``policy_name``.

        Raises:
            UnknownPolicyError: If the tier is not configured
        """
        policy = self._policies.resolve(policy_name)
        now = self._clock()

        if self._store is None:
            return self._handle_unavailable(policy, identifier, "not_configured", now)

        try:
            record, allowed = await self._store.check_and_consume(
                self.make_key(policy, identifier),
                policy.max_requests,
                policy.window_seconds,
                now,
            )
        except CounterStoreUnavailableError as e:
            return self._handle_unavailable(policy, identifier, e.reason, now)

        if not allowed:
            logger.info(
                "Rate limit exceeded",
                extra=get_log_context(policy=policy.name, identifier=identifier),
            )
            return RateLimitResult(
                success=False,
                remaining=0,
                reset=record.window_reset_at,
                limit=policy.max_requests,
            )

        return RateLimitResult(
            success=True,
            remaining=max(0, policy.max_requests - record.count),
            reset=record.window_reset_at,
            limit=policy.max_requests,
        )

    def preview(self, policy_name: str) -> RateLimitResult:
        """Result a first request in a fresh window would get; consumes nothing.

        Raises:
            UnknownPolicyError: If the tier is not configured
        """
        policy = self._policies.resolve(policy_name)
        return RateLimitResult(
            success=True,
            remaining=policy.max_requests - 1,
            reset=self._clock() + policy.window_seconds,
            limit=policy.max_requests,
        )

    def _handle_unavailable(
        self, policy: RateLimitPolicy, identifier: str, reason: str, now: float
    ) -> RateLimitResult:
        """Apply the configured fail-open/fail-closed policy."""
        context = get_log_context(policy=policy.name, identifier=identifier, reason=reason)
        if self._require_shared_store:
            logger.error(
                "Rate limit configuration error: shared counter store required "
                f"but {reason}; abuse protection degraded",
                extra=context,
            )
        elif reason == "not_configured":
            logger.warning("Rate limit counter store not configured", extra=context)
        else:
            logger.error(f"Rate limit counter store unavailable ({reason})", extra=context)

        reset = now + policy.window_seconds
        if self._on_unavailable == "deny":
            return RateLimitResult(
                success=False, remaining=0, reset=reset, limit=policy.max_requests
            )
        return RateLimitResult(
            success=True,
            remaining=self._unavailable_remaining,
            reset=reset,
            limit=policy.max_requests,
        )

    async def cleanup(self) -> int:
        """Drop expired records from the store."""
        if self._store is None:
            return 0
        return await self._store.cleanup(self._clock())

    async def close(self) -> None:
        if self._store is not None:
            await self._store.close()


def build_counter_store(config: Settings) -> Optional[CounterStore]:
    """Select the counter store for the configured deployment."""
    if config.redis_enabled:
        logger.info("Using Redis rate limit counter store")
        return RedisCounterStore(redis_url=config.redis_url)
    if config.rate_limit_require_shared_store:
        logger.error(
            "Rate limit configuration error: REDIS_ENABLED is false but a shared "
            "counter store is required"
        )
        return None
    if config.rate_limit_in_memory_fallback:
        logger.debug("Using in-memory rate limit counter store")
        return InMemoryCounterStore()
    return None


def build_rate_limiter(config: Settings) -> RateLimiter:
    return RateLimiter(
        store=build_counter_store(config),
        policies=PolicyRegistry.from_settings(config.rate_limit_policies),
        on_unavailable=config.rate_limit_on_unavailable,
        unavailable_remaining=config.rate_limit_unavailable_remaining,
        require_shared_store=config.rate_limit_require_shared_store,
    )


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = build_rate_limiter(settings)
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Reset the global rate limiter instance."""
    global _rate_limiter
    _rate_limiter = None
