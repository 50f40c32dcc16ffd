"""
Serial Registry

Reads banknote serial numbers off photos and keeps a deduplicated registry
of every serial seen, with manual entry, CSV/SQL/database export and CSV
import.
"""

__version__ = "1.0.0"
