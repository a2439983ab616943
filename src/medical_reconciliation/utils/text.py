# ============================================================================
# src/medical_reconciliation/utils/text.py
# ============================================================================
"""
Scalar coercion helpers shared by the normalizer, merger and filters.

Model output mixes strings, numbers and nulls for the same field; these
helpers collapse that into "non-empty string or None".
"""

import math
from typing import Any, Optional


def to_null_or_string(value: Any) -> Optional[str]:
    """
    Coerce a scalar to a trimmed string, or None when empty/unusable.

    Numbers are rendered without reformatting beyond what JSON parsing
    already did: integral floats drop the trailing ".0".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return None


def to_page_number(value: Any) -> Optional[int]:
    """Page numbers arrive as ints, floats or digit strings."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
        try:
            number = float(stripped)
        except ValueError:
            return None
        return int(number) if math.isfinite(number) else None
    return None
