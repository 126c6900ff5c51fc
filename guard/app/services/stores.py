"""Collaborator interfaces consumed by the abuse-control pipeline.

The pipeline never talks to a database directly. It reads and writes
through these interfaces, which the SQLAlchemy layer implements and tests
replace with fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence


class RecordType(str, Enum):
    """Kinds of record a gated write can create."""
    REPORT = "report"
    SUBMISSION = "submission"
    EVENT = "event"
    SHOP = "shop"

    @property
    def create_action(self) -> str:
        """Audit action written when a record of this type is created."""
        return f"{self.value}.create"


@dataclass(frozen=True)
class TargetIdentity:
    """What a write is about.

    Attributes:
        resource: (entity type, entity id) that must exist before the write
            proceeds, or None when the write creates something new
        match: Field/value pairs identifying "the same thing" for duplicate
            correlation; compared by exact string equality
    """
    resource: Optional[tuple[str, str]] = None
    match: tuple[tuple[str, str], ...] = ()

    @classmethod
    def for_report(cls, entity_type: str, entity_id: str) -> "TargetIdentity":
        return cls(
            resource=(entity_type, entity_id),
            match=(("entity_type", entity_type), ("entity_id", entity_id)),
        )

    @classmethod
    def for_submission(cls, entity_type: str, name: str, address: str) -> "TargetIdentity":
        # Nothing exists yet, so the submitted name and address stand in for an id
        return cls(
            match=(("entity_type", entity_type), ("name", name), ("address", address)),
        )

    @classmethod
    def for_resource(cls, entity_type: str, entity_id: str) -> "TargetIdentity":
        return cls(resource=(entity_type, entity_id))

    @property
    def match_fields(self) -> dict[str, str]:
        return dict(self.match)

    def target(self) -> "TargetIdentity":
        return self


@dataclass
class AuditLogEntry:
    """Append-only fact about a completed write."""
    action: str
    timestamp: datetime
    user_id: Optional[str] = None
    resource_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class AuditQuery:
    """Filter for recent audit entries; every given criterion must match."""
    since: datetime
    action: Optional[str] = None
    resource_ids: Optional[Sequence[str]] = None
    ip_address: Optional[str] = None
    limit: Optional[int] = None


class EntityStore(ABC):
    """Persistent directory records: events, shops, reports, submissions."""

    @abstractmethod
    async def find_by_id(self, entity_type: str, entity_id: str) -> Optional[Any]:
        """Return the entity or None.

        Raises:
            StoreUnavailableError: If the store cannot be queried
        """

    @abstractmethod
    async def find_recent_ids(
        self,
        record_type: RecordType,
        match: Mapping[str, str],
        since: datetime,
    ) -> list[str]:
        """Ids of records of ``record_type`` matching ``match`` created at or after ``since``.

        Raises:
            StoreUnavailableError: If the store cannot be queried
        """

    @abstractmethod
    async def create(self, record_type: RecordType, fields: Mapping[str, Any]) -> Any:
        """Create a record and return it; the result exposes an ``id``."""

    async def ping(self) -> bool:
        """Return False if the store cannot currently be reached."""
        return True


class AuditStore(ABC):
    """Append-only audit trail."""

    @abstractmethod
    async def append(self, entry: AuditLogEntry) -> None:
        """Persist ``entry``.

        Raises:
            StoreUnavailableError: If the write fails
        """

    @abstractmethod
    async def find_recent(self, query: AuditQuery) -> list[AuditLogEntry]:
        """Entries matching ``query``, newest first.

        Raises:
            StoreUnavailableError: If the store cannot be queried
        """
