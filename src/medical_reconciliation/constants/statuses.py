# ============================================================================
# src/medical_reconciliation/constants/statuses.py
# ============================================================================
"""
Clinical status vocabulary
"""

from enum import Enum
from typing import Any, Optional


class Status(str, Enum):
    """Status of one observation (and of a record's latest observation)."""
    LOW = "LOW"
    HIGH = "HIGH"
    NORMAL = "NORMAL"
    ABSENT = "ABSENT"
    PRESENT = "PRESENT"
    NOT_PRESENTED = "NOT_PRESENTED"
    NOT_FOUND = "NOT_FOUND"


ALLOWED_STATUSES = frozenset(s.value for s in Status)

# Flags that extractors emit instead of the full word
_STATUS_ALIASES = {
    "H": Status.HIGH,
    "L": Status.LOW,
    "N": Status.NORMAL,
    "NOT_PRESENT": Status.NOT_PRESENTED,
}


def coerce_status(value: Any) -> Optional[Status]:
    """
    Map a free-text status to the enum, or None when it is not recognised.

    Case-insensitive; spaces and hyphens are read as underscores so
    "Not Presented" and "not-found" resolve.
    """
    if isinstance(value, Status):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().upper().replace(" ", "_").replace("-", "_")
    if not key:
        return None
    if key in ALLOWED_STATUSES:
        return Status(key)
    return _STATUS_ALIASES.get(key)
