import re
from datetime import date, datetime, timezone
from typing import Union

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_LEADING_NUMBERING = re.compile(r"^[\d.\s]*")
_DUPLICATE_NOTE = re.compile(r"\s*\(duplicate\)$", re.IGNORECASE)


class NormalizationError(Exception):
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def normalize_serial(val: str) -> str:
    """
    Normalize a serial number to its canonical form.
    Uppercases and removes every non-alphanumeric character.
    e.g. " lb-4283 6549r " -> "LB42836549R"
    """
    if val is None or not str(val).strip():
        raise NormalizationError("E_SERIAL_EMPTY", "Serial number is empty")

    serial = _NON_ALNUM.sub("", str(val).upper())
    if not serial:
        raise NormalizationError("E_SERIAL_FORMAT", f"Invalid serial number: {val}")
    return serial


def clean_manual_entry(line: str) -> str:
    """
    Clean one line of a pasted serial list before normalization.
    Strips list numbering ("12. ") and trailing "(duplicate)" annotations.
    e.g. "3.  LB42836549R (duplicate)" -> "LB42836549R"
    """
    content = _LEADING_NUMBERING.sub("", line or "").strip()
    return _DUPLICATE_NOTE.sub("", content).strip()


def utc_now() -> datetime:
    """Current UTC time, naive and truncated to seconds like the stored timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def parse_timestamp(val: Union[str, date, datetime]) -> datetime:
    """
    Normalize a timestamp to a naive UTC datetime.
    Supports:
    - "YYYY-MM-DD HH:MM:SS" (as written by the CSV export)
    - ISO 8601 with "T" separator, fractional seconds and offset or "Z"
    - "YYYY-MM-DD"
    """
    if val is None:
        raise NormalizationError("E_TIMESTAMP_EMPTY", "Timestamp is empty")

    if isinstance(val, datetime):
        parsed = val
    elif isinstance(val, date):
        parsed = datetime(val.year, val.month, val.day)
    else:
        s_val = str(val).strip().strip('"')
        if not s_val:
            raise NormalizationError("E_TIMESTAMP_EMPTY", "Timestamp is empty")
        if s_val.endswith(("Z", "z")):
            s_val = s_val[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(s_val)
        except ValueError:
            raise NormalizationError("E_TIMESTAMP_FORMAT", f"Invalid timestamp format: {val}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed.replace(microsecond=0)


def format_timestamp(val: Union[str, datetime, None]) -> str:
    """
    Render a stored timestamp as "YYYY-MM-DD HH:MM:SS".
    Text values that cannot be parsed are returned unchanged.
    """
    if val is None:
        return ""
    if isinstance(val, datetime):
        return val.strftime(TIMESTAMP_FORMAT)
    try:
        return parse_timestamp(val).strftime(TIMESTAMP_FORMAT)
    except NormalizationError:
        return str(val)
