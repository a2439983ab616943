# ============================================================================
# src/medical_reconciliation/core/canonical.py
# ============================================================================
"""
Test-name canonicalization.

canonical_key: lowercase, alphanumeric only ("HS-CRP" == "hs crp").
merge_key: canonical key with method/technology fragments removed, so
"Vitamin D (HPLC)" and "Vitamin D" reconcile into one record.
"""

import re
from typing import Any, Iterable, List

from ..constants.keywords import METHOD_KEY_FRAGMENTS

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def canonical_key(name: Any) -> str:
    """Identity key for a test name; '' for empty or non-string input."""
    if not isinstance(name, str) or not name.strip():
        return ""
    return _NON_ALNUM.sub("", name.lower())


def merge_key(name: Any) -> str:
    """
    Canonical key with method fragments stripped.

    Falls back to the canonical key when stripping would leave nothing
    (a test literally named "HPLC" keeps its key).
    """
    key = canonical_key(name)
    if not key:
        return ""
    stripped = key
    for fragment in METHOD_KEY_FRAGMENTS:
        stripped = stripped.replace(fragment, "")
    return stripped or key


def unique_test_names(names: Iterable[Any]) -> List[str]:
    """Order-preserving dedup by canonical key; first spelling wins."""
    out = []
    seen = set()
    for raw in names:
        if not isinstance(raw, str):
            continue
        name = raw.strip()
        key = canonical_key(name)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(name)
    return out
