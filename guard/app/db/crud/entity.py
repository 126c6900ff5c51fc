"""Directory record CRUD operations shared by reports, submissions and listings."""
from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guard.app.db.base import Base


async def get_entity_by_id(
    session: AsyncSession,
    model: type[Base],
    entity_id: str
) -> Optional[Base]:
    """Get a record of ``model`` by primary key.

    Args:
        session: Database session
        model: Mapped class to query
        entity_id: Primary key value

    Returns:
        The record if found, None otherwise
    """
    return await session.get(model, entity_id)


async def find_recent_record_ids(
    session: AsyncSession,
    model: type[Base],
    match: Mapping[str, str],
    since: datetime
) -> List[str]:
    """Ids of ``model`` rows whose columns equal ``match`` and were created since ``since``.

    Args:
        session: Database session
        model: Mapped class with ``id`` and ``created_at`` columns
        match: Column name to exact value
        since: Inclusive lower bound on ``created_at``

    Returns:
        Matching ids, newest first

    Raises:
        KeyError: If a match field is not a column of ``model``
    """
    columns = model.__table__.columns
    query = select(model.id).where(model.created_at >= since)
    for field_name, value in match.items():
        if field_name not in columns:
            raise KeyError(f"{model.__name__} has no column {field_name!r}")
        query = query.where(columns[field_name] == value)
    query = query.order_by(model.created_at.desc())

    result = await session.execute(query)
    return list(result.scalars().all())


async def create_record(
    session: AsyncSession,
    model: type[Base],
    fields: Mapping[str, Any],
    auto_commit: bool = True
) -> Base:
    """Create a new record.

    Args:
        session: Database session
        model: Mapped class to instantiate
        fields: Column values
        auto_commit: Whether to commit the transaction. Set to False
                     if you want to control transaction boundaries manually.

    Returns:
        The created record
    """
    record = model(**fields)
    session.add(record)
    if auto_commit:
        await session.commit()
        await session.refresh(record)
    else:
        await session.flush()
    return record
