"""
Database engine helpers.

Holds the declarative base shared by the models and the engine factory used
by the registry store variants. Engines are owned by a store instance, never
by module-level state.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def sqlite_url(path: str) -> str:
    """Build the async SQLAlchemy URL for an embedded store path."""
    if path == ":memory:":
        return "sqlite+aiosqlite:///:memory:"
    return f"sqlite+aiosqlite:///{path}"


def create_sqlite_engine(path: str, echo: bool = False) -> AsyncEngine:
    """
    Create an engine for the embedded single-file store.

    An in-memory database only lives as long as its connection, so it is
    pinned to a single shared connection.
    """
    if path == ":memory:":
        return create_async_engine(
            sqlite_url(path),
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(sqlite_url(path), echo=echo)


def async_postgres_url(url: str) -> str:
    """Point a plain postgresql:// URL at the asyncpg driver."""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def create_postgres_engine(
    url: str,
    echo: bool = False,
    pool_size: int = 5,
    pool_recycle: int = 3600,
) -> AsyncEngine:
    """Create a pooled engine for the networked store."""
    return create_async_engine(
        async_postgres_url(url),
        echo=echo,
        pool_size=pool_size,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,  # Validate connections before use
    )
