"""
Candidate extraction

Turns raw recognized text into the set of strings matching the banknote
serial grammar: two letters, eight digits, one letter (e.g. LB42836549R).
"""

import re

from serial_registry.utils.normalization import NormalizationError, normalize_serial

# 2 letters + 8 digits + 1 letter, as a whole word
SERIAL_PATTERN = re.compile(r"\b[A-Z]{2}\d{8}[A-Z]\b")
SERIAL_FULL_PATTERN = re.compile(r"^[A-Z]{2}\d{8}[A-Z]$")

# Formatting noise: anything that is neither alphanumeric nor whitespace
_NOISE = re.compile(r"[^A-Z0-9\s]")


def canonicalize_text(raw_text: str) -> str:
    """Uppercase the text and drop formatting noise, keeping word boundaries."""
    return _NOISE.sub("", (raw_text or "").upper())


def extract(raw_text: str) -> set[str]:
    """
    Extract the unique serial-number candidates from recognized text.

    Matches are maximal, non-overlapping and word-bounded; repeated
    detections of the same serial collapse into one candidate.
    """
    return set(SERIAL_PATTERN.findall(canonicalize_text(raw_text)))


def is_valid_serial(value: str) -> bool:
    """Check a value against the full serial grammar after normalization."""
    try:
        return bool(SERIAL_FULL_PATTERN.match(normalize_serial(value)))
    except NormalizationError:
        return False
