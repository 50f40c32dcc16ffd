"""
Serial record model.

The registry is one flat table; every derived view (counts, pages) is
computed on read.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from serial_registry.core.database import Base

SERIALS_TABLE = "serials"

# Default source filenames for rows that did not come from an image
MANUAL_SOURCE = "manual_entry"
IMPORT_SOURCE = "imported_csv"


class RecordStatus(str, Enum):
    """Lifecycle status of a serial record."""
    CONFIRMED = "confirmed"  # OCR or manual entry
    IMPORTED = "imported"    # CSV import without an explicit status
    FLAGGED = "flagged"      # marked for review by an operator

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class SerialRecord(Base):
    """
    A banknote serial number captured by OCR, manual entry or CSV import.

    ``serial_number`` is globally unique; every write path either inserts a
    new value or reports the collision.
    """
    __tablename__ = SERIALS_TABLE
    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_serials_serial_number"),
        # AUTOINCREMENT keeps SQLite from reusing ids of deleted rows
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Surrogate key, never reused"
    )

    serial_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Canonical uppercase alphanumeric serial number"
    )

    source_filename: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Image the serial was read from, or a manual/import sentinel"
    )

    extracted_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.current_timestamp(),
        comment="Insertion time unless supplied by an import"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text(f"'{RecordStatus.CONFIRMED.value}'"),
        comment="confirmed / imported / flagged"
    )

    def __repr__(self) -> str:
        return f"<SerialRecord(id={self.id}, serial_number='{self.serial_number}', status='{self.status}')>"
