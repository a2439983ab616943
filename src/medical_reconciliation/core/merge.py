# ============================================================================
# src/medical_reconciliation/core/merge.py
# ============================================================================
"""
Merge/Dedup Engine

Combines candidate record sets (chunks, windows, providers, heuristic) into
one record per merge key with a consolidated observation series.

Two precedence tiers:
- Field level: unit/range/section/remarks/page are only filled when the
  accumulated record has none; a present value is never overwritten.
- Date level: ObservationPolicy decides which source's observations survive
  for a date both sources report. Within one source every distinct value
  is kept; exact duplicates for a date collapse to the first.

The engine is synchronous and mutates the accumulator in place; callers
merge only after all parallel extraction has settled.
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..config import extraction_settings
from ..constants.statuses import Status
from ..utils.exceptions import ConfigurationError
from .canonical import merge_key
from .records import Observation, TestRecord
from .status import compute_status

logger = logging.getLogger(__name__)

_FILL_FIELDS = ("unit", "reference_range", "section", "remarks", "page")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_DATE_FORMATS = [
    "%d/%m/%Y",      # 21/01/2025
    "%d-%m-%Y",      # 21-01-2025
    "%d.%m.%Y",      # 21.01.2025
    "%d/%m/%Y %H:%M",
    "%d-%b-%Y",      # 21-Jan-2025
    "%d-%b-%Y %H:%M",
    "%d %b %Y",      # 21 Jan 2025
    "%d %B %Y",      # 21 January 2025
    "%b %d %Y",      # Jan 21 2025
    "%b %d, %Y",     # Jan 21, 2025
    "%B %d, %Y",     # January 21, 2025
]


class ObservationPolicy(str, Enum):
    """Which source's observations survive for a date reported by both."""
    FIRST_SOURCE = "first_source"
    LATEST_SOURCE = "latest_source"
    UNION = "union"


def union_observations(observations: Iterable[Observation]) -> List[Observation]:
    """Keep encounter order; drop exact (date, value) repeats."""
    out = []
    seen = set()
    for obs in observations:
        if not obs.value:
            continue
        key = (obs.date_key, obs.value)
        if key in seen:
            continue
        seen.add(key)
        out.append(obs)
    return out


def merge_observations(
    existing: List[Observation],
    incoming: List[Observation],
    policy: ObservationPolicy = ObservationPolicy.FIRST_SOURCE
) -> List[Observation]:
    """
    Merge two observation series from different sources.

    FIRST_SOURCE: for a date present in both, only the existing entries stay.
    LATEST_SOURCE: for a date present in both, only the incoming entries stay.
    UNION: both are kept.
    """
    if policy == ObservationPolicy.FIRST_SOURCE:
        existing_dates = {obs.date_key for obs in existing}
        combined = list(existing) + [obs for obs in incoming if obs.date_key not in existing_dates]
    elif policy == ObservationPolicy.LATEST_SOURCE:
        incoming_dates = {obs.date_key for obs in incoming}
        combined = [obs for obs in existing if obs.date_key not in incoming_dates] + list(incoming)
    else:
        combined = list(existing) + list(incoming)

    return union_observations(combined)


def parse_observation_date(date_str: Optional[str]) -> Optional[datetime]:
    if not date_str or not date_str.strip():
        return None
    date_str = " ".join(date_str.split())

    if _ISO_DATE.match(date_str):
        try:
            return datetime.fromisoformat(date_str.replace("Z", "+00:00")).replace(tzinfo=None)
        except ValueError:
            formats = ["%Y-%m-%d"]
            date_str = date_str[:10]
    else:
        formats = _DATE_FORMATS

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt)
        except ValueError:
            continue
    return None


def _chronological_key(obs: Observation) -> Tuple[int, datetime, str]:
    # Undated first, then unparseable dates by text, then parsed dates
    if not obs.date_key:
        return (0, datetime.min, "")
    parsed = parse_observation_date(obs.date_and_time)
    if parsed is None:
        return (1, datetime.min, obs.date_key)
    return (2, parsed, obs.date_key)


def chronological(observations: Iterable[Observation]) -> List[Observation]:
    """Stable sort by date; same-date entries keep their encounter order."""
    return sorted(observations, key=_chronological_key)


def refresh_statuses(record: TestRecord) -> TestRecord:
    """
    Order observations by date, then recompute every observation's status
    and the record status (the latest observation's) from the range.
    """
    record.results = chronological(record.results)
    for obs in record.results:
        obs.status = compute_status(obs.value, record.reference_range, obs.reported_status)
    if record.results:
        record.status = record.results[-1].status
    return record


def _fill_missing(target: TestRecord, source: TestRecord) -> None:
    for attr in _FILL_FIELDS:
        if getattr(target, attr) is None and getattr(source, attr) is not None:
            setattr(target, attr, getattr(source, attr))


class MergeEngine:
    """
    Merges candidate record batches into an accumulator.

    Each call to merge() treats `incoming` as one source.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        policy = self.config.get("observation_policy", extraction_settings.OBSERVATION_POLICY)
        try:
            self.policy = ObservationPolicy(policy)
        except ValueError as e:
            raise ConfigurationError(f"Unknown observation_policy: {policy}") from e

    def merge(self, accumulator: List[TestRecord], incoming: List[TestRecord]) -> List[TestRecord]:
        """Merge one source batch into `accumulator` (in place) and return it."""
        index = {merge_key(r.test_name): r for r in accumulator}
        inserted = 0
        merged = 0

        for record in self._collapse_batch(incoming):
            key = merge_key(record.test_name)
            existing = index.get(key)
            if existing is None:
                refresh_statuses(record)
                index[key] = record
                accumulator.append(record)
                inserted += 1
                continue

            _fill_missing(existing, record)
            existing.results = merge_observations(existing.results, record.results, self.policy)
            if not existing.results and record.status != Status.NOT_PRESENTED:
                existing.status = record.status
            refresh_statuses(existing)
            merged += 1

        logger.debug(f"Merged batch: {inserted} new, {merged} merged, {len(accumulator)} total")
        return accumulator

    def merge_all(self, candidate_sets: Iterable[List[TestRecord]]) -> List[TestRecord]:
        """Fold several source batches, in the order given."""
        accumulator: List[TestRecord] = []
        for batch in candidate_sets:
            self.merge(accumulator, batch)
        return accumulator

    def _collapse_batch(self, records: Iterable[TestRecord]) -> List[TestRecord]:
        """Combine same-key records from a single source; all their observations are kept."""
        by_key: Dict[str, TestRecord] = {}
        out = []
        for record in records:
            key = merge_key(record.test_name)
            if not key:
                continue
            first = by_key.get(key)
            if first is None:
                record.results = union_observations(record.results)
                by_key[key] = record
                out.append(record)
                continue
            _fill_missing(first, record)
            first.results = union_observations(first.results + record.results)
        return out
