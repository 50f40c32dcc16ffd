"""
Bulk import/export

Export renders the whole registry as CSV, as a portable SQL dump, or as a raw
copy of the embedded database file. Import takes line-oriented CSV and
upserts every row: unlike OCR and manual entry, an imported row overwrites
the filename, timestamp and status of an existing serial.
"""

import csv
import io
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from serial_registry.core.exceptions import ImportFormatError, UnsupportedExportFormat
from serial_registry.core.logging import get_logger
from serial_registry.models import IMPORT_SOURCE, SERIALS_TABLE, RecordStatus
from serial_registry.services.registry_store import RegistryStore
from serial_registry.utils.normalization import (
    NormalizationError,
    format_timestamp,
    normalize_serial,
    parse_timestamp,
    utc_now,
)

logger = get_logger(__name__)

CSV_COLUMNS = ["serial_number", "source_filename", "extracted_at", "status"]
CSV_HEADER_TOKEN = "serial_number"

UPSERT_SQL = (
    f"INSERT INTO {SERIALS_TABLE} (serial_number, source_filename, extracted_at, status) "
    "VALUES (?, ?, ?, ?) "
    "ON CONFLICT (serial_number) DO UPDATE SET "
    "source_filename = excluded.source_filename, "
    "extracted_at = excluded.extracted_at, "
    "status = excluded.status"
)

SQL_DUMP_ID_COLUMN = {
    "sqlite": "id INTEGER PRIMARY KEY AUTOINCREMENT",
    "postgresql": "id SERIAL PRIMARY KEY",
}

SQL_DUMP_SCHEMA = """CREATE TABLE IF NOT EXISTS {table} (
  {id_column},
  serial_number VARCHAR(32) UNIQUE NOT NULL,
  source_filename TEXT,
  extracted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
  status VARCHAR(20) DEFAULT 'confirmed'
);"""


class ExportFormat(str, Enum):
    CSV = "csv"
    SQL = "sql"
    DB = "db"


@dataclass(frozen=True)
class ExportPayload:
    content: bytes
    media_type: str
    filename: str


@dataclass(frozen=True)
class ImportRow:
    serial_number: str
    source_filename: str
    extracted_at: datetime
    status: str


@dataclass
class ImportReport:
    processed: int = 0
    upserted: int = 0
    skipped: int = 0

    @property
    def message(self) -> str:
        message = f"Imported {self.upserted} serials successfully."
        if self.skipped:
            message += f" Skipped {self.skipped} invalid rows."
        return message


def sql_literal(value: Any) -> str:
    """Render a value as a portable SQL literal."""
    if value is None:
        return "NULL"
    if isinstance(value, datetime):
        value = format_timestamp(value)
    return "'" + str(value).replace("'", "''") + "'"


def parse_import_line(line: str, now: Optional[datetime] = None) -> Optional[ImportRow]:
    """
    Parse one CSV data line.

    A line without a comma is a bare serial. Otherwise the fields are
    positional (serial, filename, timestamp, status); quoted fields may
    contain commas, and missing or blank trailing fields take defaults.

    Returns:
        Optional[ImportRow]: None when no usable serial could be read
    """
    now = now or utc_now()

    if "," not in line:
        columns = [line]
    else:
        try:
            columns = next(csv.reader([line]), [])
        except csv.Error:
            return None

    columns = [column.strip() for column in columns] + [""] * (len(CSV_COLUMNS) - len(columns))

    try:
        serial = normalize_serial(columns[0])
    except NormalizationError:
        return None

    filename = columns[1] or IMPORT_SOURCE

    extracted_at = now
    if columns[2]:
        try:
            extracted_at = parse_timestamp(columns[2])
        except NormalizationError:
            logger.warning("Unparsable import timestamp, using current time", serial=serial, value=columns[2])

    status = columns[3].lower() or RecordStatus.IMPORTED.value
    if status not in RecordStatus.values():
        logger.warning("Unknown import status, using default", serial=serial, value=columns[3])
        status = RecordStatus.IMPORTED.value

    return ImportRow(
        serial_number=serial,
        source_filename=filename,
        extracted_at=extracted_at,
        status=status,
    )


class BulkReconciler:
    """CSV/SQL/raw-file export and CSV import against a registry store."""

    def __init__(self, store: RegistryStore):
        self.store = store

    async def _all_records(self) -> list[dict[str, Any]]:
        return await self.store.get_all(
            f"SELECT {', '.join(CSV_COLUMNS)} FROM {SERIALS_TABLE} ORDER BY id ASC"
        )

    async def export(self, fmt: str) -> ExportPayload:
        """
        Export the registry.

        Raises:
            UnsupportedExportFormat: Unknown format, or ``db`` on a backend without a file
        """
        try:
            export_format = ExportFormat((fmt or ExportFormat.CSV.value).lower())
        except ValueError:
            raise UnsupportedExportFormat(f"Unsupported export format: {fmt}")

        date_str = utc_now().date().isoformat()

        if export_format is ExportFormat.DB:
            content = await self.store.read_database_file()
            return ExportPayload(
                content=content,
                media_type="application/x-sqlite3",
                filename=f"serials_backup_{date_str}.db",
            )

        rows = await self._all_records()
        logger.info("Exporting registry", format=export_format.value, rows=len(rows))

        if export_format is ExportFormat.SQL:
            return ExportPayload(
                content=self.render_sql(rows, self.store.backend_name).encode("utf-8"),
                media_type="application/sql",
                filename=f"serials_dump_{date_str}.sql",
            )

        return ExportPayload(
            content=self.render_csv(rows).encode("utf-8"),
            media_type="text/csv",
            filename=f"serials_export_{date_str}.csv",
        )

    @staticmethod
    def render_csv(rows: list[dict[str, Any]]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for row in rows:
            writer.writerow([
                row["serial_number"],
                row["source_filename"] or "",
                format_timestamp(row["extracted_at"]),
                row["status"],
            ])
        return buffer.getvalue()

    @staticmethod
    def render_sql(rows: list[dict[str, Any]], backend: str = "sqlite") -> str:
        """
        Render a dump of CREATE TABLE plus one INSERT per row.

        The INSERTs use ON CONFLICT DO NOTHING, which both SQLite and
        PostgreSQL accept; only the id column definition follows ``backend``.
        """
        id_column = SQL_DUMP_ID_COLUMN.get(backend, SQL_DUMP_ID_COLUMN["sqlite"])
        statements = [SQL_DUMP_SCHEMA.format(table=SERIALS_TABLE, id_column=id_column)]
        for row in rows:
            values = ", ".join(sql_literal(row[column]) for column in CSV_COLUMNS)
            statements.append(
                f"INSERT INTO {SERIALS_TABLE} ({', '.join(CSV_COLUMNS)}) VALUES ({values}) "
                "ON CONFLICT (serial_number) DO NOTHING;"
            )
        return "\n".join(statements) + "\n"

    async def import_csv(self, csv_text: str) -> ImportReport:
        """
        Merge CSV rows into the registry, overwriting existing serials.

        Raises:
            ImportFormatError: No non-blank lines
            RegistryBusy: A registry wipe is in flight
        """
        lines = [line for line in (csv_text or "").lstrip("\ufeff").splitlines() if line.strip()]
        if not lines:
            raise ImportFormatError("Empty CSV file.")

        self.store.ensure_available()

        start_index = 1 if CSV_HEADER_TOKEN in lines[0].lower() else 0
        data_lines = lines[start_index:]
        report = ImportReport(processed=len(data_lines))
        now = utc_now()

        logger.info("CSV import started", lines=len(data_lines), header=bool(start_index))

        async with self.store.transaction() as tx:
            for line_number, line in enumerate(data_lines, start=start_index + 1):
                row = parse_import_line(line, now=now)
                if row is None:
                    logger.warning("Skipping unparsable import row", line_number=line_number)
                    report.skipped += 1
                    continue
                try:
                    await tx.run(
                        UPSERT_SQL,
                        [row.serial_number, row.source_filename, row.extracted_at, row.status],
                    )
                except Exception as exc:
                    logger.warning(
                        "Failed to import row",
                        line_number=line_number,
                        serial=row.serial_number,
                        error=str(exc),
                    )
                    report.skipped += 1
                    continue
                report.upserted += 1

        logger.info(
            "CSV import complete",
            processed=report.processed,
            upserted=report.upserted,
            skipped=report.skipped,
        )
        return report
