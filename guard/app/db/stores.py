"""SQLAlchemy implementations of the pipeline's entity and audit stores."""

from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guard.app.core.logging import get_logger
from guard.app.db import crud
from guard.app.db.base import Base
from guard.app.db.models import AuditLog, Event, Report, Shop, Submission
from guard.app.exceptions import StoreUnavailableError
from guard.app.services.stores import (
    AuditLogEntry,
    AuditQuery,
    AuditStore,
    EntityStore,
    RecordType,
)

logger = get_logger(__name__)

RECORD_MODELS: dict[RecordType, type[Base]] = {
    RecordType.REPORT: Report,
    RecordType.SUBMISSION: Submission,
    RecordType.EVENT: Event,
    RecordType.SHOP: Shop,
}


def model_for(entity_type: str) -> type[Base]:
    """Map an entity type name ("Event", "shop", ...) to its model.

    Raises:
        ValueError: If the name is not a known record type
    """
    return RECORD_MODELS[RecordType(entity_type.lower())]


class SqlEntityStore(EntityStore):
    """Directory records in the relational database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def find_by_id(self, entity_type: str, entity_id: str) -> Optional[Any]:
        model = model_for(entity_type)
        try:
            async with self._session_maker() as session:
                return await crud.get_entity_by_id(session, model, entity_id)
        except SQLAlchemyError as e:
            raise StoreUnavailableError("entity", str(e)) from e

    async def find_recent_ids(
        self,
        record_type: RecordType,
        match: Mapping[str, str],
        since: datetime,
    ) -> list[str]:
        try:
            async with self._session_maker() as session:
                return await crud.find_recent_record_ids(
                    session, RECORD_MODELS[record_type], match, since
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError("entity", str(e)) from e

    async def create(self, record_type: RecordType, fields: Mapping[str, Any]) -> Any:
        async with self._session_maker() as session:
            return await crud.create_record(session, RECORD_MODELS[record_type], fields)

    async def ping(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database health check failed: {e}")
            return False


class SqlAuditStore(AuditStore):
    """Audit trail in the ``audit_logs`` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def append(self, entry: AuditLogEntry) -> None:
        try:
            async with self._session_maker() as session:
                await crud.create_audit_log(
                    session,
                    action=entry.action,
                    timestamp=entry.timestamp,
                    user_id=entry.user_id,
                    resource_id=entry.resource_id,
                    details=entry.metadata,
                    ip_address=entry.ip_address,
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError("audit", str(e)) from e

    async def find_recent(self, query: AuditQuery) -> list[AuditLogEntry]:
        try:
            async with self._session_maker() as session:
                rows = await crud.get_recent_audit_logs(
                    session,
                    since=query.since,
                    action=query.action,
                    resource_ids=query.resource_ids,
                    ip_address=query.ip_address,
                    limit=query.limit,
                )
        except SQLAlchemyError as e:
            raise StoreUnavailableError("audit", str(e)) from e
        return [_to_entry(row) for row in rows]


def _to_entry(row: AuditLog) -> AuditLogEntry:
    return AuditLogEntry(
        action=row.action,
        timestamp=row.timestamp,
        user_id=row.user_id,
        resource_id=row.resource_id,
        metadata=dict(row.details or {}),
        ip_address=row.ip_address,
    )
