# ============================================================================
# src/medical_reconciliation/core/categories.py
# ============================================================================
"""
Category Assembler

Groups reconciled records into named categories and enforces that every
test appears in exactly one category of the output.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import extraction_settings
from ..constants.panels import PANELS
from ..constants.statuses import Status
from .canonical import merge_key
from .dictionary import BLOOD, HEART, OTHER, URINE, Dictionary
from .merge import MergeEngine
from .records import Category, TestRecord

logger = logging.getLogger(__name__)

DICTIONARY_CATEGORY_NAMES = (
    (HEART, "Heart"),
    (BLOOD, "Blood"),
    (URINE, "Urine"),
    (OTHER, "Other"),
)

# Categories sharing fewer tests than this never merge, whatever the ratio
_MIN_OVERLAP = 2


def _category_key(name: str) -> str:
    return " ".join((name or "").split()).lower()


def _test_keys(category: Category) -> set:
    return {merge_key(t.test_name) for t in category.tests}


class CategoryAssembler:
    """Build categories from grouped or flat record lists."""

    def __init__(
        self,
        dictionary: Dictionary,
        config: Optional[Dict[str, Any]] = None,
        merge_engine: Optional[MergeEngine] = None
    ):
        self.dictionary = dictionary
        self.config = config or {}
        self.merge_engine = merge_engine or MergeEngine(self.config)
        self.default_category = self.config.get(
            "default_category", extraction_settings.DEFAULT_CATEGORY
        )
        self.overlap_threshold = self.config.get(
            "category_overlap_threshold", extraction_settings.CATEGORY_OVERLAP_THRESHOLD
        )

    def from_groups(self, groups: Iterable[Tuple[str, List[TestRecord]]]) -> List[Category]:
        """Groups arrive already normalized, merged and filtered."""
        categories = [
            Category(name.strip() if name and name.strip() else self.default_category, list(records))
            for name, records in groups
        ]
        return self.finalize(categories)

    def from_records(self, records: Iterable[TestRecord], group_by: str = "section") -> List[Category]:
        if group_by == "dictionary":
            categories = self._group_by_dictionary(records)
        elif group_by == "section":
            categories = self._group_by_section(records)
        else:
            raise ValueError(f"Unknown group_by: {group_by}")
        return self.finalize(categories)

    def finalize(self, categories: List[Category]) -> List[Category]:
        categories = self._merge_same_name(categories)
        categories = self._merge_overlapping(categories)
        categories = self._enforce_uniqueness(categories)
        return [c for c in categories if c.tests]

    def _group_by_section(self, records: Iterable[TestRecord]) -> List[Category]:
        buckets: Dict[str, Category] = {}
        for record in records:
            name = (record.section or "").strip() or self.default_category
            key = _category_key(name)
            if key not in buckets:
                buckets[key] = Category(name)
            buckets[key].tests.append(record)
        return list(buckets.values())

    def _group_by_dictionary(self, records: Iterable[TestRecord]) -> List[Category]:
        buckets: Dict[str, List[TestRecord]] = {kind: [] for kind, _ in DICTIONARY_CATEGORY_NAMES}
        unclassified = []
        for record in records:
            kind = self.dictionary.classify(record.test_name)
            if kind in buckets:
                buckets[kind].append(record)
            else:
                unclassified.append(record)

        categories = [Category(label, buckets[kind]) for kind, label in DICTIONARY_CATEGORY_NAMES]
        categories.append(Category(self.default_category, unclassified))
        return categories

    def _absorb(self, target: Category, source: Category) -> None:
        self.merge_engine.merge(target.tests, source.tests)
        source.tests = []

    def _merge_same_name(self, categories: List[Category]) -> List[Category]:
        by_name: Dict[str, Category] = {}
        out = []
        for category in categories:
            key = _category_key(category.category_name)
            first = by_name.get(key)
            if first is None:
                by_name[key] = category
                out.append(category)
            else:
                self._absorb(first, category)
        return out

    def _merge_overlapping(self, categories: List[Category]) -> List[Category]:
        """Merge pairs whose shared tests cover the threshold share of the smaller one."""
        changed = True
        while changed:
            changed = False
            for i, first in enumerate(categories):
                first_keys = _test_keys(first)
                for second in categories[i + 1:]:
                    second_keys = _test_keys(second)
                    if not first_keys or not second_keys:
                        continue
                    shared = len(first_keys & second_keys)
                    smaller = min(len(first_keys), len(second_keys))
                    if shared >= _MIN_OVERLAP and shared / smaller >= self.overlap_threshold:
                        logger.debug(
                            f"Merging category '{second.category_name}' into "
                            f"'{first.category_name}' ({shared} shared tests)"
                        )
                        self._absorb(first, second)
                        changed = True
                        break
                if changed:
                    break
            categories = [c for c in categories if c.tests] if changed else categories
        return categories

    def _enforce_uniqueness(self, categories: List[Category]) -> List[Category]:
        """Each test key stays in its best category; duplicates are merged into it."""
        locations: Dict[str, List[Tuple[int, TestRecord]]] = {}
        for index, category in enumerate(categories):
            for record in category.tests:
                locations.setdefault(merge_key(record.test_name), []).append((index, record))

        removed = 0
        for key, hits in locations.items():
            if len(hits) < 2:
                continue
            best_index, best = max(
                hits,
                key=lambda hit: (hit[1].completeness(), len(categories[hit[0]].tests), -hit[0]),
            )
            for index, record in hits:
                if record is best:
                    continue
                self.merge_engine.merge([best], [record])
                categories[index].tests = [t for t in categories[index].tests if t is not record]
                removed += 1

        if removed:
            logger.debug(f"Removed {removed} duplicate test(s) across categories")
        return categories


def _panel_key(name: str) -> str:
    key = merge_key(name)
    if key.startswith("redbloodcells"):
        return "redbloodcells"
    return key


def build_panel_category(
    name: str,
    expected_names: Sequence[str],
    records: Iterable[TestRecord],
    include_missing: bool = True
) -> Category:
    """
    Category listing the panel's tests in panel order.

    Missing tests appear as NOT_FOUND placeholders when include_missing,
    otherwise they are left out.
    """
    found: Dict[str, TestRecord] = {}
    for record in records:
        found.setdefault(_panel_key(record.test_name), record)

    tests = []
    for expected in expected_names:
        record = found.get(_panel_key(expected))
        if record is not None:
            tests.append(replace(record, test_name=expected, results=list(record.results)))
        elif include_missing:
            tests.append(TestRecord(test_name=expected, status=Status.NOT_FOUND))
    return Category(name, tests)


def build_builtin_panel(panel: str, records: Iterable[TestRecord], include_missing: bool = True) -> Category:
    """Panel view for a built-in panel ("heart" or "urinogram")."""
    expected = PANELS.get((panel or "").strip().lower())
    if expected is None:
        raise ValueError(f"Unknown panel: {panel}")
    return build_panel_category(panel.strip().title(), expected, records, include_missing)
