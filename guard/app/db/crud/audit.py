"""Audit log CRUD operations."""
from datetime import datetime
from typing import Any, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guard.app.db.models import AuditLog


async def create_audit_log(
    session: AsyncSession,
    action: str,
    timestamp: datetime,
    user_id: Optional[str] = None,
    resource_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    auto_commit: bool = True
) -> AuditLog:
    """Append an audit log row.

    Args:
        session: Database session
        action: Dotted action name, e.g. ``report.create``
        timestamp: When the audited write completed
        user_id: Acting user, if authenticated
        resource_id: Id of the record written
        details: Free-form metadata stored in the ``metadata`` column
        ip_address: Originating address
        auto_commit: Whether to commit the transaction

    Returns:
        The created AuditLog row
    """
    log = AuditLog(
        action=action,
        timestamp=timestamp,
        user_id=user_id,
        resource_id=resource_id,
        details=details or {},
        ip_address=ip_address,
    )
    session.add(log)
    if auto_commit:
        await session.commit()
    else:
        await session.flush()
    return log


async def get_recent_audit_logs(
    session: AsyncSession,
    since: datetime,
    action: Optional[str] = None,
    resource_ids: Optional[Sequence[str]] = None,
    ip_address: Optional[str] = None,
    limit: Optional[int] = None
) -> List[AuditLog]:
    """Audit rows at or after ``since`` matching every given filter, newest first.

    An empty ``resource_ids`` matches nothing.
    """
    query = select(AuditLog).where(AuditLog.timestamp >= since)
    if action is not None:
        query = query.where(AuditLog.action == action)
    if resource_ids is not None:
        if not resource_ids:
            return []
        query = query.where(AuditLog.resource_id.in_(list(resource_ids)))
    if ip_address is not None:
        query = query.where(AuditLog.ip_address == ip_address)
    query = query.order_by(AuditLog.timestamp.desc())
    if limit is not None:
        query = query.limit(limit)

    result = await session.execute(query)
    return list(result.scalars().all())
