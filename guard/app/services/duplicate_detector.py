"""Cross-request duplicate-submission detection.

Write records do not store the submitter's address; attribution lives
only in the audit trail. Detection is therefore a join across two stores:

1. find records of the same type and target created within the lookback
2. look for a creation audit entry for one of those records from the
   same address within the lookback

Target matching is exact string equality. Whitespace or case variants of
a name are not treated as duplicates.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Literal

from guard.app.core.config import settings
from guard.app.core.logging import get_log_context, get_logger
from guard.app.core.utils import utc_now
from guard.app.exceptions import StoreUnavailableError
from guard.app.services.stores import (
    AuditQuery,
    AuditStore,
    EntityStore,
    RecordType,
    TargetIdentity,
)

logger = get_logger(__name__)

DEFAULT_LOOKBACK = timedelta(hours=24)


@dataclass(frozen=True)
class SubmissionFingerprint:
    """Correlation key for one proposed write."""
    record_type: RecordType
    target: TargetIdentity
    ip_address: str
    since: datetime


class DuplicateDetector:
    """Decides whether a write is a recent resubmission from the same origin."""

    def __init__(
        self,
        entity_store: EntityStore,
        audit_store: AuditStore,
        lookback: timedelta = DEFAULT_LOOKBACK,
        on_unavailable: Literal["allow", "deny"] = "allow",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._entity_store = entity_store
        self._audit_store = audit_store
        self._lookback = lookback
        self._on_unavailable = on_unavailable
        self._clock = clock

    @classmethod
    def from_settings(
        cls, entity_store: EntityStore, audit_store: AuditStore
    ) -> "DuplicateDetector":
        return cls(
            entity_store,
            audit_store,
            lookback=timedelta(hours=settings.duplicate_lookback_hours),
            on_unavailable=settings.duplicate_on_unavailable,
        )

    def fingerprint(
        self, record_type: RecordType, target: TargetIdentity, ip_address: str
    ) -> SubmissionFingerprint:
        return SubmissionFingerprint(
            record_type=record_type,
            target=target,
            ip_address=ip_address,
            since=self._clock() - self._lookback,
        )

    async def is_duplicate(
        self, record_type: RecordType, target: TargetIdentity, ip_address: str
    ) -> bool:
        """Return True if the write should be refused as a duplicate."""
        if not target.match:
            return False

        fp = self.fingerprint(record_type, target, ip_address)
        try:
            return await self._correlate(fp)
        except StoreUnavailableError as e:
            deny = self._on_unavailable == "deny"
            logger.error(
                f"Duplicate check failed ({e}); {'denying' if deny else 'allowing'} write",
                extra=get_log_context(client_ip=ip_address, record_type=record_type.value),
            )
            return deny

    async def _correlate(self, fp: SubmissionFingerprint) -> bool:
        record_ids = await self._entity_store.find_recent_ids(
            fp.record_type, fp.target.match_fields, fp.since
        )
        if not record_ids:
            return False

        entries = await self._audit_store.find_recent(
            AuditQuery(
                since=fp.since,
                action=fp.record_type.create_action,
                resource_ids=record_ids,
                ip_address=fp.ip_address,
                limit=1,
            )
        )
        if entries:
            logger.info(
                "Duplicate submission detected",
                extra=get_log_context(
                    client_ip=fp.ip_address,
                    record_type=fp.record_type.value,
                    resource_id=entries[0].resource_id,
                ),
            )
            return True
        return False
