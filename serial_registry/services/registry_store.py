"""
Registry store

Backend-agnostic persistence for the serial registry. Callers write SQL in a
single dialect with positional ``?`` placeholders; a store variant turns that
into something its backend executes and folds unique-constraint violations
into ``rows_affected == 0`` so that "duplicate" never surfaces as an error.

Two variants exist:

- ``EmbeddedRegistryStore``: single SQLite file through aiosqlite.
  ``transaction()`` is a real transaction.
- ``NetworkedRegistryStore``: PostgreSQL through asyncpg.
  ``transaction()`` degrades to sequential, individually committed
  statements. A failure part-way leaves earlier statements committed;
  ``supports_atomic_transactions`` is False so callers can tell.

The active variant is chosen once at startup by ``create_registry_store``.
"""

import asyncio
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from serial_registry.core.config import Settings
from serial_registry.core.database import Base, create_postgres_engine, create_sqlite_engine
from serial_registry.core.exceptions import RegistryBusy, RegistryError, UnsupportedExportFormat
from serial_registry.core.logging import get_logger
from serial_registry.models import SERIALS_TABLE
from serial_registry.utils.normalization import (
    TIMESTAMP_FORMAT,
    NormalizationError,
    parse_timestamp,
)

logger = get_logger(__name__)

TIMESTAMP_COLUMNS = frozenset({"extracted_at"})


@dataclass(frozen=True)
class RunResult:
    """Outcome of a write statement."""
    rows_affected: int

    @property
    def changed(self) -> bool:
        return self.rows_affected > 0


def translate(query: str, params: Sequence[Any] = ()) -> tuple[str, dict[str, Any]]:
    """
    Rewrite positional ``?`` placeholders into named binds.

    Question marks inside single-quoted string literals are left alone.

    Returns:
        tuple: (query with ``:p0``, ``:p1``... binds, bind values by name)

    Raises:
        ValueError: Placeholder count does not match the number of params
    """
    params = tuple(params or ())
    parts: list[str] = []
    binds: dict[str, Any] = {}
    in_literal = False
    index = 0

    for char in query:
        if char == "'":
            in_literal = not in_literal
            parts.append(char)
        elif char == "?" and not in_literal:
            if index >= len(params):
                raise ValueError(
                    f"Query has more placeholders than params ({len(params)} given)"
                )
            name = f"p{index}"
            binds[name] = params[index]
            parts.append(f":{name}")
            index += 1
        else:
            parts.append(char)

    if index != len(params):
        raise ValueError(f"Query has {index} placeholders but {len(params)} params were given")

    return "".join(parts), binds


class TransactionScope:
    """Statements executed on one connection inside one transaction."""

    def __init__(self, store: "RegistryStore", conn: AsyncConnection):
        self._store = store
        self._conn = conn

    async def run(self, query: str, params: Sequence[Any] = ()) -> RunResult:
        return await self._store._run_on(self._conn, query, params)

    async def get_one(self, query: str, params: Sequence[Any] = ()) -> Optional[dict[str, Any]]:
        return await self._store._get_one_on(self._conn, query, params)

    async def get_all(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return await self._store._get_all_on(self._conn, query, params)


class SequentialScope:
    """
    Transaction stand-in for backends without an atomic grouping.

    Every statement commits on its own; nothing is rolled back when a later
    statement fails.
    """

    def __init__(self, store: "RegistryStore"):
        self._store = store

    async def run(self, query: str, params: Sequence[Any] = ()) -> RunResult:
        return await self._store.run(query, params)

    async def get_one(self, query: str, params: Sequence[Any] = ()) -> Optional[dict[str, Any]]:
        return await self._store.get_one(query, params)

    async def get_all(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return await self._store.get_all(query, params)


class RegistryStore(ABC):
    """Common contract of the registry store variants."""

    backend_name: str = "unknown"
    supports_atomic_transactions: bool = True

    def __init__(self, echo: bool = False):
        self.echo = echo
        self._engine: Optional[AsyncEngine] = None
        self._wiping = False
        self._admin_lock = asyncio.Lock()

    # -- variant hooks -------------------------------------------------------

    @abstractmethod
    def _create_engine(self) -> AsyncEngine:
        """Create the backend engine."""

    @abstractmethod
    def is_unique_violation(self, exc: IntegrityError) -> bool:
        """True when ``exc`` is the backend's duplicate-key failure."""

    @abstractmethod
    async def wipe(self) -> None:
        """Delete every record."""

    def adapt_params(self, binds: dict[str, Any]) -> dict[str, Any]:
        """Convert bind values into what the backend driver expects."""
        return binds

    def adapt_row(self, row: dict[str, Any]) -> dict[str, Any]:
        """Convert a fetched row into backend-independent Python values."""
        return row

    async def read_database_file(self) -> bytes:
        """Raw copy of the store's file; only the embedded backend has one."""
        raise UnsupportedExportFormat(
            f"Raw database export is not available on the {self.backend_name} backend"
        )

    # -- lifecycle -----------------------------------------------------------

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RegistryError("Registry store is not connected. Call connect() during startup.")
        return self._engine

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def is_wiping(self) -> bool:
        return self._wiping

    def ensure_available(self) -> None:
        """Reject work while an administrative wipe is in flight."""
        if self._wiping:
            raise RegistryBusy("Registry is being wiped; try again shortly")

    async def connect(self) -> None:
        """Open the engine and make sure the schema exists."""
        if self._engine is not None:
            return
        self._engine = self._create_engine()
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Registry store connected", backend=self.backend_name)

    async def close(self) -> None:
        """Dispose of the engine and all pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Registry store closed", backend=self.backend_name)

    async def reconnect(self) -> None:
        """Close the current handle, if any, and open a fresh one."""
        await self.close()
        await self.connect()

    async def ping(self) -> bool:
        row = await self.get_one("SELECT 1 AS ok")
        return bool(row and row["ok"] == 1)

    # -- statement execution -------------------------------------------------

    async def _execute(self, conn: AsyncConnection, query: str, params: Sequence[Any]):
        sql, binds = translate(query, params)
        return await conn.execute(text(sql), self.adapt_params(binds))

    async def _run_on(self, conn: AsyncConnection, query: str, params: Sequence[Any]) -> RunResult:
        try:
            result = await self._execute(conn, query, params)
        except IntegrityError as exc:
            if self.is_unique_violation(exc):
                return RunResult(rows_affected=0)
            raise
        return RunResult(rows_affected=max(result.rowcount or 0, 0))

    async def _get_one_on(
        self, conn: AsyncConnection, query: str, params: Sequence[Any]
    ) -> Optional[dict[str, Any]]:
        result = await self._execute(conn, query, params)
        row = result.mappings().first()
        return self.adapt_row(dict(row)) if row is not None else None

    async def _get_all_on(
        self, conn: AsyncConnection, query: str, params: Sequence[Any]
    ) -> list[dict[str, Any]]:
        result = await self._execute(conn, query, params)
        return [self.adapt_row(dict(row)) for row in result.mappings().all()]

    async def run(self, query: str, params: Sequence[Any] = ()) -> RunResult:
        """
        Execute an INSERT/UPDATE/DELETE in its own transaction.

        A unique-constraint violation yields ``rows_affected == 0`` instead
        of an exception.
        """
        self.ensure_available()
        try:
            async with self.engine.begin() as conn:
                result = await self._execute(conn, query, params)
                return RunResult(rows_affected=max(result.rowcount or 0, 0))
        except IntegrityError as exc:
            if self.is_unique_violation(exc):
                return RunResult(rows_affected=0)
            raise

    async def get_one(self, query: str, params: Sequence[Any] = ()) -> Optional[dict[str, Any]]:
        self.ensure_available()
        async with self.engine.connect() as conn:
            return await self._get_one_on(conn, query, params)

    async def get_all(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        self.ensure_available()
        async with self.engine.connect() as conn:
            return await self._get_all_on(conn, query, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TransactionScope]:
        """
        Group ``run`` calls so they all commit or all roll back.

        Example:
            ```python
            async with store.transaction() as tx:
                await tx.run("INSERT INTO serials (serial_number) VALUES (?)", ["LB42836549R"])
            ```
        """
        self.ensure_available()
        async with self.engine.begin() as conn:
            yield TransactionScope(self, conn)


class EmbeddedRegistryStore(RegistryStore):
    """Single-file SQLite registry."""

    backend_name = "sqlite"
    supports_atomic_transactions = True

    def __init__(self, path: str, echo: bool = False):
        super().__init__(echo=echo)
        self.path = path

    @property
    def is_memory(self) -> bool:
        return self.path == ":memory:"

    @property
    def database_path(self) -> Optional[Path]:
        return None if self.is_memory else Path(self.path)

    def _create_engine(self) -> AsyncEngine:
        return create_sqlite_engine(self.path, echo=self.echo)

    def is_unique_violation(self, exc: IntegrityError) -> bool:
        orig = getattr(exc, "orig", None)
        if getattr(orig, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_UNIQUE":
            return True
        return "UNIQUE constraint failed" in str(orig if orig is not None else exc)

    def adapt_params(self, binds: dict[str, Any]) -> dict[str, Any]:
        # Stored in the same text layout SQLite's CURRENT_TIMESTAMP produces
        return {
            name: value.strftime(TIMESTAMP_FORMAT) if isinstance(value, datetime) else value
            for name, value in binds.items()
        }

    def adapt_row(self, row: dict[str, Any]) -> dict[str, Any]:
        for column in TIMESTAMP_COLUMNS.intersection(row):
            value = row[column]
            if isinstance(value, str):
                try:
                    row[column] = parse_timestamp(value)
                except NormalizationError:
                    logger.warning("Unparsable stored timestamp", column=column, value=value)
        return row

    async def wipe(self) -> None:
        """
        Recreate the store from empty.

        The file is deleted and reopened; an in-memory store drops and
        recreates its table instead. Whatever fails, a working handle is
        restored before the error propagates.
        """
        async with self._admin_lock:
            self._wiping = True
            try:
                if self.is_memory:
                    async with self.engine.begin() as conn:
                        await conn.run_sync(Base.metadata.drop_all)
                        await conn.run_sync(Base.metadata.create_all)
                else:
                    await self.close()
                    for suffix in ("", "-wal", "-shm", "-journal"):
                        Path(f"{self.path}{suffix}").unlink(missing_ok=True)
                    await self.connect()
                logger.warning("Registry wiped", backend=self.backend_name, path=self.path)
            except Exception:
                logger.error("Registry wipe failed, restoring store handle", exc_info=True)
                try:
                    await self.reconnect()
                except Exception:
                    logger.error("Could not restore registry store handle", exc_info=True)
                raise
            finally:
                self._wiping = False

    def _copy_file(self) -> bytes:
        source = self.database_path
        fd, temp_path = tempfile.mkstemp(
            prefix="serials_backup_", suffix=".db", dir=str(source.parent)
        )
        os.close(fd)
        try:
            shutil.copyfile(source, temp_path)
            return Path(temp_path).read_bytes()
        finally:
            Path(temp_path).unlink(missing_ok=True)

    async def read_database_file(self) -> bytes:
        if self.is_memory:
            raise UnsupportedExportFormat("Raw database export is not available for an in-memory store")
        self.ensure_available()
        return await asyncio.to_thread(self._copy_file)


class NetworkedRegistryStore(RegistryStore):
    """PostgreSQL registry reached through a connection string."""

    backend_name = "postgresql"
    supports_atomic_transactions = False

    UNIQUE_VIOLATION = "23505"

    def __init__(
        self,
        url: str,
        echo: bool = False,
        pool_size: int = 5,
        pool_recycle: int = 3600,
    ):
        super().__init__(echo=echo)
        self.url = url
        self.pool_size = pool_size
        self.pool_recycle = pool_recycle

    def _create_engine(self) -> AsyncEngine:
        return create_postgres_engine(
            self.url,
            echo=self.echo,
            pool_size=self.pool_size,
            pool_recycle=self.pool_recycle,
        )

    def is_unique_violation(self, exc: IntegrityError) -> bool:
        orig = getattr(exc, "orig", None)
        for candidate in (orig, getattr(orig, "__cause__", None)):
            if candidate is None:
                continue
            code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
            if code == self.UNIQUE_VIOLATION:
                return True
        return "duplicate key value violates unique constraint" in str(orig if orig is not None else exc)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SequentialScope]:
        self.ensure_available()
        logger.debug(
            "Transaction scope runs as sequential statements without rollback",
            backend=self.backend_name,
        )
        yield SequentialScope(self)

    async def wipe(self) -> None:
        """Delete every row in a single statement."""
        async with self._admin_lock:
            self._wiping = True
            try:
                async with self.engine.begin() as conn:
                    await conn.execute(text(f"DELETE FROM {SERIALS_TABLE}"))
                logger.warning("Registry wiped", backend=self.backend_name)
            finally:
                self._wiping = False


def create_registry_store(settings: Settings) -> RegistryStore:
    """
    Pick the registry backend from configuration.

    A configured DATABASE_URL selects PostgreSQL; otherwise the embedded
    SQLite file is used.
    """
    if settings.use_networked_backend:
        return NetworkedRegistryStore(
            settings.database_url,
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
            pool_recycle=settings.database_pool_recycle,
        )
    return EmbeddedRegistryStore(settings.sqlite_path, echo=settings.database_echo)
