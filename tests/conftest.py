"""
Pytest configuration and fixtures.

Store tests run against a throwaway SQLite file (one per test) through
aiosqlite, so nothing here needs a PostgreSQL server. Coordinator tests
that need precise interleaving use the in-memory fakes in fakes.py.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import vigil.models  # noqa: F401  (register tables on Base.metadata)
from vigil.core.db import Base, get_db
from vigil.models import Project
from vigil.rules.cache import RuleCache, RuleLocks
from vigil.rules.index import MetricIndex
from vigil.rules.service import RuleService
from vigil.rules.store import RuleStore

from fakes import FrozenClock


KNOWN_METRICS = [
    "svc.api.latency",
    "svc.db.latency",
    "svc.cache.latency",
    "svc.api.errors",
    "svc.api.db.latency",
    "batch.api.latency",
]


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'vigil.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def project(db_session) -> Project:
    return await RuleStore(db_session).create_project(Project(name="payments"))


# =============================================================================
# SHARED STATE
# =============================================================================


@pytest.fixture
def rule_cache() -> RuleCache:
    return RuleCache()


@pytest.fixture
def rule_locks() -> RuleLocks:
    return RuleLocks()


@pytest.fixture
def metric_index() -> MetricIndex:
    return MetricIndex(KNOWN_METRICS)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def rule_service(db_session, rule_cache, metric_index, rule_locks, clock) -> RuleService:
    """RuleService over the SQLite store."""
    return RuleService(
        RuleStore(db_session),
        rule_cache,
        metric_index,
        locks=rule_locks,
        clock=clock,
    )


# =============================================================================
# HTTP CLIENT
# =============================================================================


@pytest.fixture
async def client(session_factory, rule_cache, metric_index, rule_locks):
    """
    HTTP client wired to the app, with the database swapped for SQLite.

    httpx doesn't run the lifespan, so the shared state is set here.
    """
    from vigil.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.rule_cache = rule_cache
    app.state.metric_index = metric_index
    app.state.rule_locks = rule_locks

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
