"""Data models for fixed-window rate limiting."""

import math
from dataclasses import dataclass


@dataclass
class RateLimitRecord:
    """Counter state for one (policy, identifier) key.

    Attributes:
        count: Successful checks consumed in the current window
        window_reset_at: Epoch seconds at which the window ends
    """
    count: int
    window_reset_at: float

    def is_expired(self, now: float) -> bool:
        """A record is live up to and including its reset instant."""
        return now > self.window_reset_at


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    success: bool
    remaining: int
    reset: float
    limit: int

    @property
    def reset_time(self) -> int:
        """Reset instant rounded up to whole epoch seconds."""
        return math.ceil(self.reset)

    def retry_after(self, now: float) -> int:
        """Seconds a denied caller should wait, never less than 1."""
        return max(1, math.ceil(self.reset - now))

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }
