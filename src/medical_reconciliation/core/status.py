# ============================================================================
# src/medical_reconciliation/core/status.py
# ============================================================================
"""
Reference-range parsing and clinical status computation.

The value text is never modified here; comparison symbols such as "<5" are
stripped only for the numeric comparison.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from ..constants.statuses import Status, coerce_status

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_UNSIGNED = r"(\d+(?:\.\d+)?)"
_SIGNED = r"(?<![\d.])(-?\d+(?:\.\d+)?)"

_BETWEEN = re.compile(_SIGNED + r"\s*(?:-|–|—|\bto\b)\s*" + _UNSIGNED, re.IGNORECASE)
_LESS_THAN = re.compile(
    r"(?:<=?|≤|\bup\s*to\b|\bless\s+than\b|\bbelow\b|\bupto\b)\s*" + _UNSIGNED,
    re.IGNORECASE,
)
_GREATER_THAN = re.compile(
    r"(?:>=?|≥|\bmore\s+than\b|\bgreater\s+than\b|\babove\b)\s*" + _UNSIGNED,
    re.IGNORECASE,
)


@dataclass(frozen=True)
class RangeBounds:
    kind: str  # "between" | "lt" | "gt"
    min: Optional[float] = None
    max: Optional[float] = None


def pick_first_number(text: Any) -> Optional[float]:
    """First numeric substring of a value, ignoring any leading symbol."""
    if text is None:
        return None
    match = _NUMBER.search(str(text).replace(",", ""))
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def parse_range_bounds(reference_range: Any) -> Optional[RangeBounds]:
    """
    Parse a reference-range string.

    "40-60", "40 to 60"  -> between
    "<200", "up to 200"  -> lt
    ">40", "above 40"    -> gt
    anything else with two numbers -> between on the first two
    """
    if reference_range is None:
        return None
    text = str(reference_range).strip()
    if not text:
        return None

    match = _BETWEEN.search(text)
    if match:
        low, high = float(match.group(1)), float(match.group(2))
        return RangeBounds("between", min(low, high), max(low, high))

    match = _LESS_THAN.search(text)
    if match:
        return RangeBounds("lt", max=float(match.group(1)))

    match = _GREATER_THAN.search(text)
    if match:
        return RangeBounds("gt", min=float(match.group(1)))

    numbers = [float(n) for n in _NUMBER.findall(text.replace(",", ""))]
    if len(numbers) >= 2:
        low, high = numbers[0], numbers[1]
        return RangeBounds("between", min(low, high), max(low, high))
    return None


def _qualitative_status(value: str) -> Optional[Status]:
    lowered = value.strip().lower()
    if lowered in ("absent", "nil", "not detected", "negative", "non reactive", "non-reactive"):
        return Status.ABSENT
    if lowered in ("present", "detected", "positive", "reactive"):
        return Status.PRESENT
    return None


def compute_status(
    value: Any,
    reference_range: Any = None,
    fallback_status: Any = None
) -> Status:
    """
    Status of one observation.

    Numeric value with parseable bounds decides LOW/HIGH/NORMAL. Otherwise
    the fallback wins when it is an allowed status; failing that a
    qualitative value ("Absent", "Present") maps to ABSENT/PRESENT, an
    absent value to NOT_PRESENTED and anything else to NORMAL.
    """
    fallback = coerce_status(fallback_status)
    value_text = "" if value is None else str(value).strip()

    if not value_text:
        return fallback or Status.NOT_PRESENTED

    number = pick_first_number(value_text)
    bounds = parse_range_bounds(reference_range)

    if number is None or bounds is None:
        if fallback is not None:
            return fallback
        if number is None:
            return _qualitative_status(value_text) or Status.NORMAL
        return Status.NORMAL

    if bounds.kind == "between":
        if number < bounds.min:
            return Status.LOW
        if number > bounds.max:
            return Status.HIGH
        return Status.NORMAL
    if bounds.kind == "lt":
        return Status.HIGH if number > bounds.max else Status.NORMAL
    if bounds.kind == "gt":
        return Status.LOW if number < bounds.min else Status.NORMAL
    return Status.NORMAL
