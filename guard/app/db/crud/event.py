"""Event CRUD operations for the admin API."""
from typing import Any, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from guard.app.db.models import Event


async def get_event_by_id(session: AsyncSession, event_id: str) -> Optional[Event]:
    return await session.get(Event, event_id)


async def create_event(session: AsyncSession, fields: Mapping[str, Any]) -> Event:
    """Create and commit a new event."""
    event = Event(**fields)
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


async def update_event(
    session: AsyncSession,
    event_id: str,
    changes: Mapping[str, Any]
) -> Optional[Event]:
    """Apply ``changes`` to an event.

    Args:
        session: Database session
        event_id: The event ID
        changes: Column values to overwrite; keys absent here are untouched

    Returns:
        The updated event, or None if it does not exist
    """
    event = await session.get(Event, event_id)
    if event is None:
        return None
    for key, value in changes.items():
        setattr(event, key, value)
    await session.commit()
    await session.refresh(event)
    return event


async def delete_event(session: AsyncSession, event_id: str) -> bool:
    """Delete an event.

    Returns:
        True if the event existed and was deleted
    """
    event = await session.get(Event, event_id)
    if event is None:
        return False
    await session.delete(event)
    await session.commit()
    return True
