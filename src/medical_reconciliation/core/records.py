# ============================================================================
# src/medical_reconciliation/core/records.py
# ============================================================================
"""
Reconciled data model
- Observation: one dated value with its status
- TestRecord: one canonical test with its observation series
- Category: a named group of records

Attributes are snake_case; to_dict() emits the camelCase output contract.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..constants.statuses import Status


@dataclass
class Observation:
    value: Optional[str]
    date_and_time: Optional[str] = None
    status: Status = Status.NORMAL

    # Status as reported by the extractor; used as fallback on recomputation
    reported_status: Optional[str] = None

    @property
    def date_key(self) -> str:
        """Grouping key: trimmed, case-insensitive; missing dates share ''"""
        return (self.date_and_time or "").strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "dateAndTime": self.date_and_time,
            "status": self.status.value,
        }


@dataclass
class TestRecord:
    __test__ = False  # not a pytest test class

    test_name: str
    results: List[Observation] = field(default_factory=list)
    unit: Optional[str] = None
    reference_range: Optional[str] = None
    section: Optional[str] = None
    page: Optional[int] = None
    remarks: Optional[str] = None
    status: Status = Status.NOT_PRESENTED

    @property
    def latest(self) -> Optional[Observation]:
        return self.results[-1] if self.results else None

    @property
    def value(self) -> Optional[str]:
        """Convenience alias for the latest observation's value"""
        latest = self.latest
        return latest.value if latest else None

    def has_value(self) -> bool:
        return any(obs.value for obs in self.results)

    def lab_signals(self) -> bool:
        """Unit, range, section or remarks present"""
        return bool(self.unit or self.reference_range or self.section or self.remarks)

    def completeness(self) -> int:
        """Rough information score used to pick between duplicates"""
        score = 10 * len([obs for obs in self.results if obs.value])
        for attr in (self.unit, self.reference_range, self.section, self.remarks):
            if attr:
                score += 2
        if self.page is not None:
            score += 1
        return score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "testName": self.test_name,
            "value": self.value,
            "results": [obs.to_dict() for obs in self.results],
            "unit": self.unit,
            "referenceRange": self.reference_range,
            "status": self.status.value,
            "section": self.section,
            "page": self.page,
            "remarks": self.remarks,
        }


@dataclass
class Category:
    category_name: str
    tests: List[TestRecord] = field(default_factory=list)

    @property
    def data(self) -> bool:
        """True when at least one test was actually presented"""
        return any(
            t.status not in (Status.NOT_PRESENTED, Status.NOT_FOUND)
            for t in self.tests
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categoryName": self.category_name,
            "tests": [t.to_dict() for t in self.tests],
        }
