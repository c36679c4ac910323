"""
Alembic environment configuration.

Run by Alembic for every migration command. Points Alembic at our
models and at the same DATABASE_URL the application uses.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from vigil.core.config import settings
from vigil.core.db import Base

# Import all models so they register with Base.metadata
import vigil.models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    """Get database URL from our application settings."""
    return settings.database_url


def run_migrations_offline() -> None:
    """
    Generate SQL without connecting to the database.

    Usage: alembic upgrade head --sql > migration.sql
    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Connect to the database and migrate it.

    Alembic doesn't run async migrations natively, so this uses a plain
    synchronous engine (psycopg supports both).
    """
    connectable = create_engine(
        get_url(),
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
