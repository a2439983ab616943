# ============================================================================
# src/medical_reconciliation/extractors/heuristic_extractor.py
# ============================================================================
"""
Heuristic Line Extractor

AI-free extraction of candidate test rows from report text. Two line
shapes are recognised:

    Total Cholesterol: 210 mg/dl (<200)     colon form
    Vitamin D  HPLC  32.5  ng/mL  30-100    token form

Used as a backstop for AI extraction and to estimate how many tests a
report holds. Stateless; output depends only on the input text.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from ..constants.keywords import (
    METHOD_TOKENS,
    NON_TEST_LABEL_PATTERN,
    QUALITATIVE_VALUE_PATTERN,
)
from ..core.relevance import looks_like_address

# "210mg/dl" -> "210 mg/dl"; "HbA1c" and "B12" stay intact
_NUMBER_THEN_LETTERS = re.compile(r"(?<![A-Za-z\d.])(\d+(?:[.,]\d+)?)([A-Za-zµμ%])")
# "Hemoglobin13.5" -> "Hemoglobin 13.5"
_WORD_THEN_DECIMAL = re.compile(r"([A-Za-zµμ]{3,})(\d+[.,]\d+)")
# "Fasting95 mg/dl" -> "Fasting 95 mg/dl"; "pCO2", "HCO3" and "HbA1c" stay intact
_WORD_THEN_INTEGER = re.compile(r"([A-Za-zµμ]{2,}[a-z])(\d+)(?![A-Za-z\d.,])")
_SPACES = re.compile(r"[ \t]+")

_NUMERIC_VALUE = re.compile(r"^[<>≤≥]?\d+(?:[.,]\d+)?%?$")
_RANGE_TOKEN = re.compile(r"^(?:[<>≤≥]=?\d+(?:\.\d+)?|\d+(?:\.\d+)?[-–]\d+(?:\.\d+)?)$")
_RANGE_IN_TEXT = re.compile(
    r"([<>≤≥]=?\s*\d+(?:\.\d+)?|\d+(?:\.\d+)?\s*(?:-|–|\bto\b)\s*\d+(?:\.\d+)?)",
    re.IGNORECASE,
)
_TRAILING_QUALITATIVE = re.compile(
    r"^(?P<name>.*?[A-Za-z].*?)\s+(?P<value>non\s*reactive|not\s*detected|absent|present|nil|"
    r"negative|positive|trace|reactive|detected)\s*$",
    re.IGNORECASE,
)
_HAS_LETTER = re.compile(r"[A-Za-zµμ]")
_HAS_DIGIT = re.compile(r"\d")
_DATE_TOKEN = re.compile(r"\d{1,4}[/.-]\d{1,2}[/.-]\d{2,4}")
_TIME_TOKEN = re.compile(r"\d{1,2}:\d{2}")

KNOWN_UNITS = frozenset({
    "%", "g/dl", "gm/dl", "mg/dl", "mg/l", "g/l", "mmol/l", "umol/l", "µmol/l",
    "meq/l", "iu/l", "u/l", "iu/ml", "miu/l", "µiu/ml", "uiu/ml", "miu/ml",
    "ng/ml", "ng/dl", "pg/ml", "µg/dl", "ug/dl", "mcg/dl", "µg/l", "ug/l",
    "fl", "pg", "sec", "secs", "mm/hr", "mm/1st", "cells/cumm", "/cumm",
    "lakhs/cumm", "mill/cumm", "million/cumm", "10^3/µl", "10^6/µl",
    "/hpf", "/lpf", "ratio", "index", "mosm/kg",
})

_DEDUPE_FIELDS = ("testName", "value", "unit", "referenceRange")

_BOILERPLATE_PAIRS = (
    ("patient", "name"),
    ("collected", "reported"),
)


def normalize_report_text(text: str) -> str:
    """Separate glued number/letter runs and collapse horizontal whitespace."""
    text = text or ""
    text = _WORD_THEN_DECIMAL.sub(r"\1 \2", text)
    text = _WORD_THEN_INTEGER.sub(r"\1 \2", text)
    text = _NUMBER_THEN_LETTERS.sub(r"\1 \2", text)
    return "\n".join(_SPACES.sub(" ", line).strip() for line in text.splitlines())


def ignore_line(line: str) -> bool:
    """Header/footer boilerplate, table headings and addresses."""
    if len(line) < 3 or len(line) > 240:
        return True
    lowered = line.lower()
    if lowered.startswith("page "):
        return True
    if "reference range" in lowered and len(line) < 50:
        return True
    if "method" in lowered and "unit" in lowered and "result" in lowered:
        return True
    if any(a in lowered and b in lowered for a, b in _BOILERPLATE_PAIRS):
        return True
    return looks_like_address(line)


def _bare(token: str) -> str:
    return token.strip("()[],;")


def is_method_token(token: str) -> bool:
    return _bare(token).upper() in METHOD_TOKENS


def is_numeric_token(token: str) -> bool:
    return bool(_NUMERIC_VALUE.match(token))


def is_range_token(token: str) -> bool:
    return bool(_RANGE_TOKEN.match(_bare(token)))


def is_colon_value_token(token: str) -> bool:
    """Any digit-bearing result ("2-4", "1+", "10^3") that is not a date or time."""
    bare = _bare(token)
    if not _HAS_DIGIT.search(bare):
        return False
    return not (_DATE_TOKEN.search(bare) or _TIME_TOKEN.search(bare))


def is_unit_token(token: str, strict: bool = False) -> bool:
    """
    Unit-looking token. Strict mode (used for the token before a value,
    which is usually the tail of the name) only accepts known units or
    tokens with "/" or "%".
    """
    bare = _bare(token)
    if not bare or is_method_token(bare) or is_numeric_token(bare) or is_range_token(bare):
        return False
    if QUALITATIVE_VALUE_PATTERN.fullmatch(bare):
        return False
    lowered = bare.lower()
    if lowered in KNOWN_UNITS or "/" in bare or "%" in bare:
        return True
    if strict:
        return False
    return len(bare) <= 6 and bool(_HAS_LETTER.search(bare))


def _find_range(text: str) -> Optional[str]:
    match = _RANGE_IN_TEXT.search(text or "")
    return " ".join(match.group(1).split()) if match else None


def _strip_method_tokens(tokens: List[str]) -> List[str]:
    start, end = 0, len(tokens)
    while start < end and is_method_token(tokens[start]):
        start += 1
    while end > start and is_method_token(tokens[end - 1]):
        end -= 1
    return tokens[start:end]


def _row(name: str, value: str, unit: Optional[str] = None, reference_range: Optional[str] = None) -> Dict[str, Any]:
    return {
        "testName": name,
        "value": value,
        "unit": unit,
        "referenceRange": reference_range,
    }


def _acceptable_name(name: str) -> bool:
    return bool(name) and bool(_HAS_LETTER.search(name)) and not NON_TEST_LABEL_PATTERN.match(name)


def parse_colon_line(line: str) -> Optional[Dict[str, Any]]:
    """'Name: value [unit] [(range)]' or 'Name: Absent'."""
    if ":" not in line or "http" in line.lower():
        return None

    left, right = line.split(":", 1)
    name = left.strip()
    tail = right.strip()
    if not _acceptable_name(name) or not tail:
        return None

    if QUALITATIVE_VALUE_PATTERN.fullmatch(tail):
        return _row(name, tail)

    tokens = tail.split()
    if not is_colon_value_token(tokens[0]):
        return None

    value = tokens[0]
    rest = tokens[1:]
    unit = None
    if rest and is_unit_token(rest[0]):
        unit = _bare(rest[0])
        rest = rest[1:]
    reference_range = _find_range(" ".join(rest).replace("(", " ").replace(")", " "))
    return _row(name, value, unit, reference_range)


def parse_token_line(line: str) -> Optional[Dict[str, Any]]:
    """Whitespace-tokenized row with a numeric (or trailing qualitative) value."""
    tokens = line.split()
    index = next((i for i, t in enumerate(tokens) if is_numeric_token(t)), None)

    if index is None:
        match = _TRAILING_QUALITATIVE.match(line)
        if not match:
            return None
        name = " ".join(_strip_method_tokens(match.group("name").split()))
        return _row(name, match.group("value")) if _acceptable_name(name) else None

    value = tokens[index]
    before = tokens[:index]
    after = tokens[index + 1:]

    unit = None
    unit_from_after = False
    if after and is_unit_token(after[0]):
        unit = _bare(after[0])
        unit_from_after = True
    elif before and is_unit_token(before[-1], strict=True):
        unit = _bare(before[-1])
        before = before[:-1]

    remaining_after = after[1:] if unit_from_after else after
    reference_range = None
    for token in remaining_after:
        if is_range_token(token):
            reference_range = _bare(token)
            break
    if reference_range is None:
        reference_range = _find_range(" ".join(remaining_after))

    name_tokens = _strip_method_tokens(before)
    if not name_tokens:
        name_tokens = [
            t for t in _strip_method_tokens(remaining_after)
            if not is_numeric_token(t) and not is_range_token(t) and not is_method_token(t)
            and t not in ("-", "–", "to")
        ]
    name = " ".join(name_tokens).strip(" -:")
    if not _acceptable_name(name):
        return None
    return _row(name, value, unit, reference_range)


def _dedupe_key(row: Dict[str, Any]) -> Tuple:
    return tuple(" ".join(str(row[k]).lower().split()) if row[k] else None for k in _DEDUPE_FIELDS)


def heuristic_extract(text: str) -> List[Dict[str, Any]]:
    """Candidate rows from report text, deduplicated case-insensitively by (name, value, unit, range)."""
    rows = []
    seen = set()
    for line in normalize_report_text(text).splitlines():
        if ignore_line(line):
            continue
        row = parse_colon_line(line) or parse_token_line(line)
        if row is None:
            continue
        key = _dedupe_key(row)
        if key in seen:
            continue
        seen.add(key)
        rows.append(row)
    return rows


def estimate_total_tests(text: str, cap: int = 5000) -> Optional[int]:
    """Heuristic row count for progress reporting; None when nothing is found."""
    count = len(heuristic_extract(text))
    if count == 0:
        return None
    return min(cap, count)
