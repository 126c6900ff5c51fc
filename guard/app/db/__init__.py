"""Database package: models, async sessions, CRUD and store implementations."""

from guard.app.db.async_session import (
    close_async_engine,
    get_async_engine,
    get_async_session,
    get_async_session_maker,
    init_async_db,
)
from guard.app.db.stores import SqlAuditStore, SqlEntityStore

__all__ = [
    "close_async_engine",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
    "init_async_db",
    "SqlAuditStore",
    "SqlEntityStore",
]
