# ============================================================================
# src/medical_reconciliation/core/relevance.py
# ============================================================================
"""
Medical-Relevance Filter

Drops candidates that are not lab results: postal addresses, patient
demographics, interpretation tables ("Prediabetic", "Good Control",
"100 - 125 mg/dL") and bare identifiers.
"""

import logging
import re
from typing import Iterable, List, Optional

from ..constants.keywords import (
    ADDRESS_KEYWORD_PATTERN,
    MEDICAL_NAME_PATTERN,
    NON_TEST_LABEL_PATTERN,
    POSTAL_CODE_PATTERN,
)
from .dictionary import Dictionary
from .records import TestRecord

logger = logging.getLogger(__name__)

_UNIT_WORD = r"(mg/dl|mg/l|g/dl|mmol/l|iu/l|u/l|ng/ml|pg/ml|µg/dl|ug/dl|%)"

_INTERPRETATION_EXACT = frozenset({
    "normal", "below", "above", "or higher", "to", "c values", "c value",
    "high", "low", "borderline", "borderline high", "optimal", "desirable",
    "near optimal", "very high", "interpretation", "remarks", "note",
})

_INTERPRETATION_PATTERNS = (
    re.compile(r"\bpre[- ]?diab(et)?ic\b", re.IGNORECASE),
    re.compile(r"\bunsatisfactory\b", re.IGNORECASE),
    re.compile(r"\b(good|fair|poor)\s+control\b", re.IGNORECASE),
    re.compile(r"^\s*diabetic\b", re.IGNORECASE),
    re.compile(r"\b(normal|below|above|higher|lower)\b.*" + _UNIT_WORD, re.IGNORECASE),
    re.compile(r"^\s*(to|or)\b.*" + _UNIT_WORD, re.IGNORECASE),
    re.compile(r"^\s*[<>≤≥]?\s*\d+(\.\d+)?\s*(-|–|to)\s*\d+(\.\d+)?\s*" + _UNIT_WORD + r"?\s*$", re.IGNORECASE),
    re.compile(r"^\s*[<>≤≥]?\s*\d+(\.\d+)?\s*" + _UNIT_WORD + r"\s*$", re.IGNORECASE),
)
_CONTROL_WORD = re.compile(r"\bcontrol\b", re.IGNORECASE)
_QUALITY_CONTROL = re.compile(r"\bquality\s+control\b", re.IGNORECASE)

_BARE_DIGITS = re.compile(r"^\d{1,6}$")
_HAS_LETTER = re.compile(r"[A-Za-z]")


def looks_like_address(text: Optional[str]) -> bool:
    """Address keyword plus a comma or postal code, or a postal code with 2+ commas."""
    if not text:
        return False
    has_keyword = bool(ADDRESS_KEYWORD_PATTERN.search(text))
    has_comma = "," in text
    has_pin = bool(POSTAL_CODE_PATTERN.search(text))
    if has_keyword and (has_comma or has_pin):
        return True
    return has_pin and text.count(",") >= 2


def looks_like_interpretation_name(name: Optional[str]) -> bool:
    if not name:
        return False
    stripped = name.strip()
    if stripped.lower() in _INTERPRETATION_EXACT:
        return True
    if _CONTROL_WORD.search(stripped) and not _QUALITY_CONTROL.search(stripped):
        return True
    return any(p.search(stripped) for p in _INTERPRETATION_PATTERNS)


def looks_like_meaningless_value(value: Optional[str]) -> bool:
    """Bare 1-6 digit numbers: serials, sample IDs, PIN codes."""
    if not value:
        return True
    return bool(_BARE_DIGITS.match(value.strip()))


def is_medical_record(record: TestRecord, dictionary: Dictionary) -> bool:
    name = (record.test_name or "").strip()
    if not name or not _HAS_LETTER.search(name):
        return False
    if not record.has_value():
        return False

    values = [obs.value for obs in record.results if obs.value]
    if looks_like_address(name) or any(looks_like_address(v) for v in values):
        return False
    if looks_like_interpretation_name(name):
        return False
    if NON_TEST_LABEL_PATTERN.match(name):
        return False

    if dictionary.contains(name):
        return True
    if record.lab_signals():
        return True
    if MEDICAL_NAME_PATTERN.search(name):
        return any(not looks_like_meaningless_value(v) for v in values)
    return False


def filter_medical_records(
    records: Iterable[TestRecord],
    dictionary: Dictionary
) -> List[TestRecord]:
    """Keep only records that look like genuine lab results."""
    kept = []
    dropped = 0
    for record in records:
        if is_medical_record(record, dictionary):
            kept.append(record)
        else:
            dropped += 1
    if dropped:
        logger.debug(f"Relevance filter dropped {dropped} record(s), kept {len(kept)}")
    return kept
