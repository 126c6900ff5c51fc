"""Abuse-control pipeline gating public writes and admin mutations.

Stages run in a fixed order and the first rejection ends the request:

    spam check -> rate limit -> target exists -> duplicate check -> proceed

Only a request that clears every stage reaches the write, and only a
write that completes is recorded in the audit trail. The duplicate
detector relies on that: an audit entry always means a record exists.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar, Union

from guard.app.core.logging import get_log_context, get_logger
from guard.app.services.audit import record_audit
from guard.app.services.duplicate_detector import DuplicateDetector
from guard.app.services.rate_limit import RateLimiter, RateLimitResult
from guard.app.services.spam_filter import SpamFilter
from guard.app.services.stores import AuditStore, EntityStore, RecordType, TargetIdentity

logger = get_logger(__name__)

T = TypeVar("T")


class Targeted(Protocol):
    """Anything that can name the target of a write."""

    def target(self) -> TargetIdentity: ...


# A target known up front, or a parser that validates the raw payload and
# yields one. Parsing runs after the rate limit so that the honeypot check
# sees the payload before any validation does.
Subject = Union[Targeted, Callable[[Any], Targeted], None]


@dataclass(frozen=True)
class RequestContext:
    """Per-request facts the pipeline needs."""
    ip_address: str
    payload: Any = None
    user_id: Optional[str] = None
    request_id: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    """Outcome of gate(); subclasses name each terminal state."""

    @property
    def proceed(self) -> bool:
        return False


@dataclass(frozen=True)
class Proceed(Decision):
    rate_limit: RateLimitResult
    subject: Optional[Any] = None

    @property
    def proceed(self) -> bool:
        return True


@dataclass(frozen=True)
class RejectedSilentSpam(Decision):
    # Placeholder quota shown to the sender; nothing was consumed
    rate_limit: RateLimitResult


@dataclass(frozen=True)
class RejectedRateLimited(Decision):
    rate_limit: RateLimitResult

    @property
    def reset(self) -> float:
        return self.rate_limit.reset

    @property
    def limit(self) -> int:
        return self.rate_limit.limit


@dataclass(frozen=True)
class RejectedNotFound(Decision):
    entity_type: str
    entity_id: str


@dataclass(frozen=True)
class RejectedDuplicate(Decision):
    rate_limit: RateLimitResult


class AbuseControlPipeline:
    """Composes spam filter, rate limiter and duplicate detector."""

    def __init__(
        self,
        spam_filter: SpamFilter,
        rate_limiter: RateLimiter,
        duplicate_detector: DuplicateDetector,
        entity_store: EntityStore,
        audit_store: AuditStore,
    ):
        self.spam_filter = spam_filter
        self.rate_limiter = rate_limiter
        self.duplicate_detector = duplicate_detector
        self.entity_store = entity_store
        self.audit_store = audit_store

    async def gate(
        self,
        ctx: RequestContext,
        policy_name: str,
        record_type: RecordType,
        subject: Subject = None,
        *,
        identifier: Optional[str] = None,
    ) -> Decision:
        """Run every stage for one request.

        Args:
            ctx: Request facts
            policy_name: Rate limit tier
            record_type: Kind of record the write touches
            subject: Target of the write, or a payload parser producing it
            identifier: Rate limit identifier; defaults to
                ``"<record type>:<ip address>"``

        Raises:
            UnknownPolicyError: If ``policy_name`` is not configured
            pydantic.ValidationError: If a payload parser rejects the payload
        """
        log_context = get_log_context(
            request_id=ctx.request_id,
            client_ip=ctx.ip_address,
            user_id=ctx.user_id,
            policy=policy_name,
        )

        if self.spam_filter.is_spam(ctx.payload):
            logger.info("Honeypot triggered, discarding request", extra=log_context)
            return RejectedSilentSpam(rate_limit=self.rate_limiter.preview(policy_name))

        rate_limit = await self.rate_limiter.check(
            identifier or f"{record_type.value}:{ctx.ip_address}", policy_name
        )
        if not rate_limit.success:
            return RejectedRateLimited(rate_limit=rate_limit)

        resolved = subject(ctx.payload) if callable(subject) else subject
        if resolved is None:
            return Proceed(rate_limit=rate_limit)
        target = resolved.target()

        if target.resource is not None:
            entity_type, entity_id = target.resource
            if await self.entity_store.find_by_id(entity_type, entity_id) is None:
                return RejectedNotFound(entity_type=entity_type, entity_id=entity_id)

        if await self.duplicate_detector.is_duplicate(record_type, target, ctx.ip_address):
            return RejectedDuplicate(rate_limit=rate_limit)

        return Proceed(rate_limit=rate_limit, subject=resolved)

    async def complete(
        self,
        ctx: RequestContext,
        action: str,
        write: Callable[[], Awaitable[T]],
        *,
        resource_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> T:
        """Perform a gated write, then audit it.

        A failing write propagates and leaves no audit entry.
        """
        result = await write()
        if resource_id is None:
            resource_id = getattr(result, "id", None)
        await record_audit(
            self.audit_store,
            action,
            user_id=ctx.user_id,
            resource_id=resource_id,
            metadata=metadata,
            ip_address=ctx.ip_address,
        )
        return result
