"""Audit recording for completed writes."""

from typing import Any, Optional

from guard.app.core.logging import get_log_context, get_logger
from guard.app.core.utils import utc_now
from guard.app.exceptions import StoreUnavailableError
from guard.app.services.stores import AuditLogEntry, AuditStore

logger = get_logger(__name__)


async def record_audit(
    store: AuditStore,
    action: str,
    *,
    user_id: Optional[str] = None,
    resource_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> bool:
    """Append an audit entry for a write that has already completed.

    The write cannot be undone at this point, so a failing audit store is
    logged and reported through the return value instead of raised.

    Returns:
        True if the entry was stored
    """
    entry = AuditLogEntry(
        action=action,
        timestamp=utc_now(),
        user_id=user_id,
        resource_id=resource_id,
        metadata=metadata or {},
        ip_address=ip_address,
    )
    try:
        await store.append(entry)
    except StoreUnavailableError as e:
        logger.error(
            f"Failed to record audit log: {e}",
            extra=get_log_context(action=action, user_id=user_id, resource_id=resource_id),
        )
        return False

    logger.info(
        "Audit log recorded",
        extra=get_log_context(action=action, user_id=user_id, resource_id=resource_id),
    )
    return True
