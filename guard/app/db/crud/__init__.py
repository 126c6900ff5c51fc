"""CRUD operations package.

- entity.py: generic lookups and inserts for directory records
- event.py: admin event mutations
- audit.py: audit trail append and query
"""

# Directory record operations
from guard.app.db.crud.entity import (
    get_entity_by_id,
    find_recent_record_ids,
    create_record,
)

# Event operations
from guard.app.db.crud.event import (
    get_event_by_id,
    create_event,
    update_event,
    delete_event,
)

# Audit operations
from guard.app.db.crud.audit import (
    create_audit_log,
    get_recent_audit_logs,
)

__all__ = [
    # Directory record operations
    "get_entity_by_id",
    "find_recent_record_ids",
    "create_record",
    # Event operations
    "get_event_by_id",
    "create_event",
    "update_event",
    "delete_event",
    # Audit operations
    "create_audit_log",
    "get_recent_audit_logs",
]
