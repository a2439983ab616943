# ============================================================================
# src/medical_reconciliation/extractors/normalizer.py
# ============================================================================
"""
Record Normalizer

Maps arbitrarily-shaped extractor payloads onto TestRecord. All field-name
aliasing happens here; nothing downstream sees vendor keys.

Accepted shapes:
- a single test object, or a list of them
- containers: tests, parameters, items, results, rows, data, blood_tests, ...
- nested containers: blood.tests, result.parameters, ...
- grouped payloads: [{"categoryName": ..., "tests": [...]}, ...]
- spreadsheet payloads: {"excelSheets": {"normal": [...], "abnormal": [...]}}
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..constants.statuses import Status, coerce_status
from ..core.records import Observation, TestRecord
from ..utils.text import to_null_or_string, to_page_number

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------------
# Alias table
# ----------------------------------------------------------------------------

NAME_KEYS = ("testName", "test_name", "name", "parameterName", "parameter", "analyte", "test", "itemName")
VALUE_KEYS = ("value", "observed_value", "result", "reading")
UNIT_KEYS = ("unit", "units")
RANGE_KEYS = ("referenceRange", "reference_range", "range", "ref_range", "normal_range")
STATUS_KEYS = ("status", "flag", "abnormal_flag")
REMARKS_KEYS = ("remarks", "remark", "comments")
SECTION_KEYS = ("section", "panel")
DATE_KEYS = ("dateAndTime", "date_time", "date")
PAGE_KEYS = ("page",)
RESULTS_KEYS = ("results", "observations")

GROUP_NAME_KEYS = ("categoryName", "category", "groupName", "name", "panel", "section")
GROUP_ITEMS_KEYS = ("tests", "items")

CONTAINER_KEYS = (
    "tests",
    "blood_tests",
    "urine_tests",
    "heart_tests",
    "parameters",
    "items",
    "results",
    "rows",
    "data",
)
NESTED_CONTAINER_PATHS = (
    ("blood", "tests"),
    ("blood", "parameters"),
    ("result", "tests"),
    ("result", "parameters"),
)
SHEET_CONTAINER_KEYS = ("excelSheets", "sheets", "excel")
SHEET_KEY_FRAGMENTS = ("notpresent", "abnormal", "normal")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def first_string(raw: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    """First alias that resolves to a non-empty scalar string."""
    for key in keys:
        if key in raw:
            value = to_null_or_string(raw[key])
            if value is not None:
                return value
    return None


def _first_list(raw: Dict[str, Any], keys: Sequence[str]) -> Optional[list]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, list):
            return value
    return None


def looks_like_test(raw: Any) -> bool:
    if not isinstance(raw, dict) or first_string(raw, NAME_KEYS) is None:
        return False
    series = _first_list(raw, RESULTS_KEYS)
    if series is not None:
        # A "results" list of named entries is a container, not a series
        return not any(isinstance(item, dict) and first_string(item, NAME_KEYS) for item in series)
    return any(key in raw for key in VALUE_KEYS + UNIT_KEYS + RANGE_KEYS + STATUS_KEYS)


def looks_like_group(raw: Any) -> bool:
    """Named object carrying a list of tests."""
    if not isinstance(raw, dict):
        return False
    if first_string(raw, GROUP_NAME_KEYS) is None:
        return False
    return _first_list(raw, GROUP_ITEMS_KEYS) is not None


# ----------------------------------------------------------------------------
# Single record
# ----------------------------------------------------------------------------

def _normalize_observations(raw: Dict[str, Any], default_date: Optional[str], default_status: Optional[str]) -> List[Observation]:
    observations = []
    series = _first_list(raw, RESULTS_KEYS)
    for item in series or ():
        if isinstance(item, dict):
            value = first_string(item, VALUE_KEYS)
            date = first_string(item, DATE_KEYS) or default_date
            status = first_string(item, STATUS_KEYS) or default_status
        else:
            value = to_null_or_string(item)
            date = default_date
            status = default_status
        if value is None:
            continue
        observations.append(Observation(value=value, date_and_time=date, reported_status=status))

    if not observations:
        value = first_string(raw, VALUE_KEYS)
        if value is not None:
            observations.append(Observation(value=value, date_and_time=default_date, reported_status=default_status))
    return observations


def normalize_record(raw: Any, default_section: Optional[str] = None) -> Optional[TestRecord]:
    """One raw candidate -> TestRecord, or None when it has no usable name."""
    if not isinstance(raw, dict):
        return None

    name = first_string(raw, NAME_KEYS)
    if name is None:
        return None

    reported_status = first_string(raw, STATUS_KEYS)
    observations = _normalize_observations(raw, first_string(raw, DATE_KEYS), reported_status)

    page = None
    for key in PAGE_KEYS:
        page = to_page_number(raw.get(key))
        if page is not None:
            break

    return TestRecord(
        test_name=" ".join(name.split()),
        results=observations,
        unit=first_string(raw, UNIT_KEYS),
        reference_range=first_string(raw, RANGE_KEYS),
        section=first_string(raw, SECTION_KEYS) or default_section,
        page=page,
        remarks=first_string(raw, REMARKS_KEYS),
        status=coerce_status(reported_status) or Status.NOT_PRESENTED,
    )


# ----------------------------------------------------------------------------
# Containers
# ----------------------------------------------------------------------------

def _sheet_items(sheets: Any) -> List[Dict[str, Any]]:
    if not isinstance(sheets, dict):
        return []
    items = []
    for key, rows in sheets.items():
        compact = _NON_ALNUM.sub("", str(key).lower())
        if any(fragment in compact for fragment in SHEET_KEY_FRAGMENTS) and isinstance(rows, list):
            items.extend(r for r in rows if isinstance(r, dict))
    return items


def iter_candidate_items(payload: Any, section: Optional[str] = None) -> Iterable[Tuple[Dict[str, Any], Optional[str]]]:
    """
    Yield (raw test, group section) pairs from any accepted payload shape.
    """
    if isinstance(payload, list):
        for item in payload:
            if isinstance(item, list):
                yield from iter_candidate_items(item, section)
            elif looks_like_group(item):
                group_name = first_string(item, GROUP_NAME_KEYS)
                yield from iter_candidate_items(_first_list(item, GROUP_ITEMS_KEYS), group_name)
            elif isinstance(item, dict):
                yield item, section
        return

    if not isinstance(payload, dict):
        return

    if looks_like_test(payload):
        yield payload, section
        return
    if looks_like_group(payload):
        group_name = first_string(payload, GROUP_NAME_KEYS)
        yield from iter_candidate_items(_first_list(payload, GROUP_ITEMS_KEYS), group_name)
        return

    found = False
    for key in CONTAINER_KEYS:
        value = payload.get(key)
        if isinstance(value, (list, dict)):
            found = True
            yield from iter_candidate_items(value, section)

    for outer, inner in NESTED_CONTAINER_PATHS:
        container = payload.get(outer)
        if isinstance(container, dict) and isinstance(container.get(inner), list):
            found = True
            yield from iter_candidate_items(container[inner], section)

    for key in SHEET_CONTAINER_KEYS:
        rows = _sheet_items(payload.get(key))
        if rows:
            found = True
            yield from ((row, section) for row in rows)

    if found:
        return

    # Last resort: any list of test-looking objects
    for value in payload.values():
        if isinstance(value, list) and any(looks_like_test(v) for v in value):
            yield from iter_candidate_items(value, section)


def normalize_candidates(payload: Any, default_section: Optional[str] = None) -> List[TestRecord]:
    """Flat TestRecord list from any accepted payload; nameless entries dropped."""
    records = []
    dropped = 0
    for raw, section in iter_candidate_items(payload, default_section):
        record = normalize_record(raw, section)
        if record is None:
            dropped += 1
            continue
        records.append(record)
    if dropped:
        logger.debug(f"Normalizer dropped {dropped} entr{'y' if dropped == 1 else 'ies'} without a name")
    return records


def split_groups(payload: Any) -> Optional[List[Tuple[str, List[Any]]]]:
    """
    (group name, raw items) pairs when the payload is grouped, else None.

    Grouped means a list (bare, or under "tests"/"categories") whose
    members are all named groups.
    """
    candidates = payload
    if isinstance(payload, dict):
        candidates = payload.get("categories", payload.get("tests"))
    if not isinstance(candidates, list) or not candidates:
        return None
    if not all(looks_like_group(item) for item in candidates):
        return None
    return [
        (first_string(item, GROUP_NAME_KEYS), _first_list(item, GROUP_ITEMS_KEYS))
        for item in candidates
    ]
