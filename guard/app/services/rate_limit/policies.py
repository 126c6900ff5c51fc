"""Named rate-limit tiers.

Policies are static configuration: they are built once from settings at
startup and never mutated afterwards.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

from guard.app.core.config import PolicySettings
from guard.app.exceptions import UnknownPolicyError

# Tier names referenced by route handlers
DEFAULT = "default"
STRICT = "strict"
VERY_STRICT = "very_strict"
ADMIN = "admin"

REQUIRED_POLICIES = (DEFAULT, STRICT, VERY_STRICT, ADMIN)


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable configuration for one named tier.

    Attributes:
        name: Tier name used by callers
        max_requests: Successful checks allowed per window
        window_seconds: Fixed window length
    """
    name: str
    max_requests: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError(f"Policy {self.name!r}: max_requests must be at least 1")
        if self.window_seconds < 1:
            raise ValueError(f"Policy {self.name!r}: window_seconds must be at least 1")


class PolicyRegistry:
    """Read-only lookup of rate-limit policies by name."""

    def __init__(self, policies: Iterable[RateLimitPolicy]):
        self._policies: dict[str, RateLimitPolicy] = {}
        for policy in policies:
            if policy.name in self._policies:
                raise ValueError(f"Duplicate rate limit policy: {policy.name!r}")
            self._policies[policy.name] = policy

    @classmethod
    def from_settings(cls, policies: Mapping[str, PolicySettings]) -> "PolicyRegistry":
        return cls(
            RateLimitPolicy(
                name=name,
                max_requests=cfg.max_requests,
                window_seconds=cfg.window_seconds,
            )
            for name, cfg in policies.items()
        )

    def resolve(self, name: str) -> RateLimitPolicy:
        """Return the policy for ``name``.

        Raises:
            UnknownPolicyError: If no such tier is configured
        """
        try:
            return self._policies[name]
        except KeyError:
            raise UnknownPolicyError(name) from None

    def validate(self, names: Iterable[str]) -> None:
        """Fail fast if any of ``names`` is not configured."""
        for name in names:
            self.resolve(name)

    def __contains__(self, name: object) -> bool:
        return name in self._policies

    def __iter__(self) -> Iterator[RateLimitPolicy]:
        return iter(self._policies.values())

    def __len__(self) -> int:
        return len(self._policies)
