"""Fixed-window rate limiting with in-memory and Redis counter stores."""

from guard.app.services.rate_limit.backends import (
    CounterStore,
    InMemoryCounterStore,
    RedisCounterStore,
)
from guard.app.services.rate_limit.models import RateLimitRecord, RateLimitResult
from guard.app.services.rate_limit.policies import (
    ADMIN,
    DEFAULT,
    REQUIRED_POLICIES,
    STRICT,
    VERY_STRICT,
    PolicyRegistry,
    RateLimitPolicy,
)
from guard.app.services.rate_limit.service import (
    RateLimiter,
    build_counter_store,
    build_rate_limiter,
    get_rate_limiter,
    reset_rate_limiter,
)

__all__ = [
    # Models
    "RateLimitRecord",
    "RateLimitResult",
    "RateLimitPolicy",
    "PolicyRegistry",
    # Tier names
    "DEFAULT",
    "STRICT",
    "VERY_STRICT",
    "ADMIN",
    "REQUIRED_POLICIES",
    # Backends
    "CounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    # Service
    "RateLimiter",
    "build_counter_store",
    "build_rate_limiter",
    "get_rate_limiter",
    "reset_rate_limiter",
]
