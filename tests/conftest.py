"""Shared fixtures: in-memory SQLite stores, a controllable clock, and a wired pipeline."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from guard.app.db.async_session import init_async_db
from guard.app.db.stores import SqlAuditStore, SqlEntityStore
from guard.app.services.duplicate_detector import DuplicateDetector
from guard.app.services.pipeline import AbuseControlPipeline
from guard.app.services.rate_limit import InMemoryCounterStore, RateLimiter
from guard.app.services.spam_filter import SpamFilter

from tests.fakes import FakeClock, make_policies


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(InMemoryCounterStore(), make_policies(), clock=clock)


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_async_db(engine)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def entity_store(session_maker):
    return SqlEntityStore(session_maker)


@pytest.fixture
def audit_store(session_maker):
    return SqlAuditStore(session_maker)


@pytest.fixture
def pipeline(rate_limiter, entity_store, audit_store):
    return AbuseControlPipeline(
        spam_filter=SpamFilter("honeypot"),
        rate_limiter=rate_limiter,
        duplicate_detector=DuplicateDetector(entity_store, audit_store),
        entity_store=entity_store,
        audit_store=audit_store,
    )

