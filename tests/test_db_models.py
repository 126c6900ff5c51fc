from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from guard.app.db.base import Base
from guard.app.db import crud
from guard.app.db import models  # noqa: F401 - import to register models
from guard.app.db.stores import SqlAuditStore, SqlEntityStore, model_for
from guard.app.exceptions import StoreUnavailableError
from guard.app.services.stores import AuditLogEntry, AuditQuery, RecordType

LONG_AGO = datetime(2000, 1, 1, tzinfo=timezone.utc)


def test_db_models_create_tables():
    tables = Base.metadata.tables.keys()
    assert "events" in tables
    assert "shops" in tables
    assert "reports" in tables
    assert "submissions" in tables
    assert "audit_logs" in tables


def test_audit_metadata_column_name():
    assert "metadata" in Base.metadata.tables["audit_logs"].columns


def test_model_for_entity_type_names():
    assert model_for("Event") is models.Event
    assert model_for("shop") is models.Shop
    with pytest.raises(ValueError):
        model_for("Venue")


@pytest.mark.asyncio
async def test_create_assigns_id_and_timestamp(entity_store):
    report = await entity_store.create(
        RecordType.REPORT,
        {
            "entity_type": "Shop",
            "entity_id": "shop-1",
            "issue_type": "Other",
            "description": "Opening hours are out of date",
        },
    )
    assert report.id
    assert report.status == "pending"
    assert report.created_at is not None


@pytest.mark.asyncio
async def test_find_recent_ids_filters_on_match_and_time(entity_store):
    first = await entity_store.create(
        RecordType.SUBMISSION,
        {"entity_type": "Shop", "name": "Vinyl Corner", "address": "1 High Street"},
    )
    await entity_store.create(
        RecordType.SUBMISSION,
        {"entity_type": "Shop", "name": "Vinyl Corner", "address": "2 Low Road"},
    )

    match = {"entity_type": "Shop", "name": "Vinyl Corner", "address": "1 High Street"}
    assert await entity_store.find_recent_ids(RecordType.SUBMISSION, match, LONG_AGO) == [first.id]

    future = datetime.now(timezone.utc) + timedelta(minutes=1)
    assert await entity_store.find_recent_ids(RecordType.SUBMISSION, match, future) == []


@pytest.mark.asyncio
async def test_find_recent_ids_rejects_unknown_field(entity_store):
    with pytest.raises(KeyError):
        await entity_store.find_recent_ids(RecordType.REPORT, {"colour": "red"}, LONG_AGO)


@pytest.mark.asyncio
async def test_audit_round_trip_and_filters(audit_store):
    now = datetime.now(timezone.utc)
    await audit_store.append(
        AuditLogEntry(action="report.create", timestamp=now - timedelta(minutes=5),
                      resource_id="r-1", ip_address="203.0.113.7", metadata={"entity_type": "Event"})
    )
    await audit_store.append(
        AuditLogEntry(action="report.create", timestamp=now,
                      resource_id="r-2", ip_address="198.51.100.3")
    )
    await audit_store.append(
        AuditLogEntry(action="event.delete", timestamp=now, resource_id="r-1", user_id="admin")
    )

    newest_first = await audit_store.find_recent(AuditQuery(since=LONG_AGO, action="report.create"))
    assert [e.resource_id for e in newest_first] == ["r-2", "r-1"]
    assert newest_first[1].metadata == {"entity_type": "Event"}

    by_ip = await audit_store.find_recent(
        AuditQuery(since=LONG_AGO, resource_ids=["r-1", "r-2"], ip_address="203.0.113.7")
    )
    assert [e.action for e in by_ip] == ["report.create"]

    limited = await audit_store.find_recent(AuditQuery(since=LONG_AGO, limit=1))
    assert len(limited) == 1

    assert await audit_store.find_recent(AuditQuery(since=LONG_AGO, resource_ids=[])) == []


@pytest.mark.asyncio
async def test_event_crud(session_maker):
    async with session_maker() as session:
        event = await crud.create_event(
            session,
            {
                "name": "Jazz Night",
                "start_date": datetime(2030, 5, 1, 19, tzinfo=timezone.utc),
                "location": "The Cellar",
                "address": "1 High Street",
            },
        )
        updated = await crud.update_event(session, event.id, {"location": "The Loft"})
        assert updated.location == "The Loft"
        assert await crud.update_event(session, "missing", {"name": "x"}) is None

        assert await crud.delete_event(session, event.id) is True
        assert await crud.delete_event(session, event.id) is False
        assert await crud.get_event_by_id(session, event.id) is None


def failing_session_maker():
    session = MagicMock()
    session.__aenter__.side_effect = OperationalError("SELECT 1", {}, Exception("db down"))
    return MagicMock(return_value=session)


@pytest.mark.asyncio
async def test_entity_store_wraps_database_errors():
    store = SqlEntityStore(failing_session_maker())
    with pytest.raises(StoreUnavailableError):
        await store.find_by_id("Event", "event-1")
    with pytest.raises(StoreUnavailableError):
        await store.find_recent_ids(RecordType.REPORT, {"entity_id": "x"}, LONG_AGO)
    assert await store.ping() is False


@pytest.mark.asyncio
async def test_audit_store_wraps_database_errors():
    store = SqlAuditStore(failing_session_maker())
    with pytest.raises(StoreUnavailableError):
        await store.append(AuditLogEntry(action="report.create", timestamp=LONG_AGO))
    with pytest.raises(StoreUnavailableError):
        await store.find_recent(AuditQuery(since=LONG_AGO))
