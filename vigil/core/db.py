"""
Database connection and session management.

SQLAlchemy 2.0 async pattern:
- Engine: manages the connection pool
- AsyncSessionLocal: factory for creating database sessions
- Base: parent class for all our ORM models
"""

from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from vigil.core.config import settings


# =============================================================================
# DATABASE ENGINE
# =============================================================================
# - echo=settings.debug: when True, logs all SQL statements
# - pool_pre_ping=True: tests connections before using them (handles stale connections)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)


# =============================================================================
# SESSION FACTORY
# =============================================================================
# expire_on_commit=False: objects remain usable after commit. The rule
# service reads the persisted row after commit to build the cache entry,
# and an expired attribute would trigger an implicit (sync) refresh.
# A rollback still expires everything in the session.

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# =============================================================================
# BASE MODEL CLASS
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


# =============================================================================
# TIMESTAMPS
# =============================================================================
# Every timestamp is UTC and timezone-aware in Python, whatever the
# backend returns: PostgreSQL hands back timestamptz in the session's
# TimeZone, SQLite drops the offset altogether. A value read back from
# the table therefore equals the one that was written.


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC copy of `value`; naive values are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """TIMESTAMP WITH TIME ZONE that always loads as aware UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


# =============================================================================
# DEPENDENCY: GET DATABASE SESSION
# =============================================================================
# One session per request. `async with` guarantees the session is closed
# even if the route raises.


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency that provides a database session.

    Usage in a route:
        @router.get("/rules/{rule_id}")
        async def get_rule(rule_id: int, db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        yield session
