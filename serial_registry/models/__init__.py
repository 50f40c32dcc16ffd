"""Database model definitions."""

from .serial_record import (
    IMPORT_SOURCE,
    MANUAL_SOURCE,
    SERIALS_TABLE,
    RecordStatus,
    SerialRecord,
)

__all__ = [
    "SerialRecord",
    "RecordStatus",
    "SERIALS_TABLE",
    "MANUAL_SOURCE",
    "IMPORT_SOURCE",
]
