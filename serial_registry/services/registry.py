"""
Registry service

Read views (full list, pages, stats) and the operator-driven writes: manual
batch add, edit and delete. Manual adds follow the same conflict-counting
rule as OCR ingestion and never overwrite an existing row.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from serial_registry.core.logging import get_logger
from serial_registry.models import MANUAL_SOURCE, SERIALS_TABLE, RecordStatus
from serial_registry.services.registry_store import RegistryStore
from serial_registry.utils.normalization import (
    NormalizationError,
    clean_manual_entry,
    normalize_serial,
)

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 500

RECORD_COLUMNS = "id, serial_number, source_filename, extracted_at, status"


def escape_like(term: str) -> str:
    """Make ``%`` and ``_`` match literally in a ``LIKE ... ESCAPE '\\'`` pattern."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UpdateOutcome(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


@dataclass
class BatchAddResult:
    added: int = 0
    duplicates: int = 0
    invalid: int = 0


class RegistryService:
    """Operations on the registry outside of OCR ingestion and bulk transfer."""

    def __init__(self, store: RegistryStore):
        self.store = store

    async def list_serials(self) -> list[str]:
        rows = await self.store.get_all(
            f"SELECT serial_number FROM {SERIALS_TABLE} ORDER BY serial_number ASC"
        )
        return [row["serial_number"] for row in rows]

    async def get_records(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        q: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        One page of records, newest first, optionally filtered by a serial substring.

        Returns:
            dict: ``{"data": [...], "pagination": {current, limit, totalRecords, totalPages}}``
        """
        page = page if page and page > 0 else 1
        limit = min(limit, MAX_PAGE_SIZE) if limit and limit > 0 else DEFAULT_PAGE_SIZE
        offset = (page - 1) * limit

        term = escape_like((q or "").strip().upper())
        pattern = f"%{term}%" if term else "%"

        count_row = await self.store.get_one(
            f"SELECT COUNT(*) AS total FROM {SERIALS_TABLE} WHERE serial_number LIKE ? ESCAPE '\\'",
            [pattern],
        )
        total_records = int(count_row["total"]) if count_row else 0

        rows = await self.store.get_all(
            f"SELECT {RECORD_COLUMNS} FROM {SERIALS_TABLE} "
            "WHERE serial_number LIKE ? ESCAPE '\\' ORDER BY id DESC LIMIT ? OFFSET ?",
            [pattern, limit, offset],
        )

        return {
            "data": rows,
            "pagination": {
                "current": page,
                "limit": limit,
                "totalRecords": total_records,
                "totalPages": math.ceil(total_records / limit),
            },
        }

    async def get_record(self, record_id: int) -> Optional[dict[str, Any]]:
        return await self.store.get_one(
            f"SELECT {RECORD_COLUMNS} FROM {SERIALS_TABLE} WHERE id = ?",
            [record_id],
        )

    async def add_serials(self, entries: Iterable[str]) -> BatchAddResult:
        """
        Add manually entered serials.

        Each entry is cleaned (list numbering, "(duplicate)" notes) and
        normalized; entries that end up empty count as invalid. Existing
        serials are counted as duplicates and left untouched.
        """
        self.store.ensure_available()
        result = BatchAddResult()
        serials: list[str] = []

        for entry in entries:
            try:
                serials.append(normalize_serial(clean_manual_entry(entry)))
            except NormalizationError:
                result.invalid += 1

        if serials:
            async with self.store.transaction() as tx:
                for serial in serials:
                    outcome = await tx.run(
                        f"INSERT INTO {SERIALS_TABLE} (serial_number, source_filename, status) "
                        "VALUES (?, ?, ?) ON CONFLICT (serial_number) DO NOTHING",
                        [serial, MANUAL_SOURCE, RecordStatus.CONFIRMED.value],
                    )
                    if outcome.changed:
                        result.added += 1
                    else:
                        result.duplicates += 1

        logger.info(
            "Manual serials added",
            added=result.added,
            duplicates=result.duplicates,
            invalid=result.invalid,
        )
        return result

    async def update_record(self, record_id: int, serial_number: str, status: str) -> UpdateOutcome:
        """
        Edit a record's serial number and status.

        Renaming onto a serial that already exists is reported as a conflict
        and changes nothing.
        """
        serial = normalize_serial(serial_number)
        status = RecordStatus(status).value

        existing = await self.store.get_one(
            f"SELECT id FROM {SERIALS_TABLE} WHERE id = ?", [record_id]
        )
        if existing is None:
            return UpdateOutcome.NOT_FOUND

        result = await self.store.run(
            f"UPDATE {SERIALS_TABLE} SET serial_number = ?, status = ? WHERE id = ?",
            [serial, status, record_id],
        )
        if not result.changed:
            logger.warning("Record update collided with existing serial", record_id=record_id, serial=serial)
            return UpdateOutcome.CONFLICT

        logger.info("Record updated", record_id=record_id, serial=serial, status=status)
        return UpdateOutcome.UPDATED

    async def delete_serial(self, serial_number: str) -> bool:
        try:
            serial = normalize_serial(serial_number)
        except NormalizationError:
            return False

        result = await self.store.run(
            f"DELETE FROM {SERIALS_TABLE} WHERE serial_number = ?", [serial]
        )
        if result.changed:
            logger.info("Serial deleted", serial=serial)
        return result.changed

    async def count(self) -> int:
        row = await self.store.get_one(f"SELECT COUNT(*) AS total FROM {SERIALS_TABLE}")
        return int(row["total"]) if row else 0

    async def stats(self) -> dict[str, Any]:
        rows = await self.store.get_all(
            f"SELECT status, COUNT(*) AS total FROM {SERIALS_TABLE} GROUP BY status ORDER BY status"
        )
        by_status = {status: 0 for status in RecordStatus.values()}
        for row in rows:
            by_status[row["status"]] = int(row["total"])
        return {"total": sum(by_status.values()), "by_status": by_status}
