"""
Alembic environment

Runs registry migrations against whichever backend the application settings
select: PostgreSQL when DATABASE_URL is set, otherwise the SQLite file.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from serial_registry.core.config import get_settings
from serial_registry.core.database import Base, async_postgres_url, sqlite_url

# Import models so the metadata is complete
from serial_registry.models import SerialRecord  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

settings = get_settings()
if settings.use_networked_backend:
    db_url = async_postgres_url(settings.database_url)
else:
    db_url = sqlite_url(settings.sqlite_path)

config.set_main_option("sqlalchemy.url", db_url)


def run_migrations_offline() -> None:
    """
    Emit migration SQL without connecting.

    The URL alone is enough to pick the dialect.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=True,  # SQLite batch mode for ALTER TABLE
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations through the same async driver the application uses."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
