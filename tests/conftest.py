# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.
"""

import asyncio
from typing import Callable, List, Optional, Sequence

import pytest

from medical_reconciliation.core.dictionary import Dictionary, get_dictionary
from medical_reconciliation.core.records import Observation, TestRecord
from medical_reconciliation.extractors.base import BaseExtractorClient, BinaryFile
from medical_reconciliation.extractors.prompts import OBJECT_SCHEMA_HINT


DICTIONARY_NAMES = [
    "Total Cholesterol",
    "HDL Cholesterol",
    "LDL Cholesterol",
    "Triglycerides",
    "Hemoglobin",
    "MCV",
    "Platelet Count",
    "Vitamin D (25-OH)",
    "Vitamin B12",
    "Urine pH",
    "Urinary Protein",
    "Stool Culture",
]


class FakeExtractor(BaseExtractorClient):
    """
    In-test extractor collaborator.

    handler(segment) returns the raw model text or raises; repair_handler
    does the same for repair calls.
    """

    def __init__(
        self,
        handler: Callable[[str], str],
        repair_handler: Optional[Callable[[str, str], str]] = None,
        delay: float = 0.0
    ):
        super().__init__({})
        self.handler = handler
        self.repair_handler = repair_handler
        self.delay = delay
        self.calls: List[str] = []
        self.image_calls: List[Optional[Sequence[BinaryFile]]] = []
        self.repair_calls: List[str] = []
        self.cancelled = 0

    async def extract(self, segment, images=None, schema_hint=OBJECT_SCHEMA_HINT):
        self.calls.append(segment)
        self.image_calls.append(images)
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        return self.handler(segment)

    async def repair(self, raw_text, schema_hint=OBJECT_SCHEMA_HINT):
        self.repair_calls.append(schema_hint)
        if self.repair_handler is None:
            return ""
        return self.repair_handler(raw_text, schema_hint)


def make_record(
    name: str,
    *values: str,
    date: Optional[str] = None,
    unit: Optional[str] = None,
    reference_range: Optional[str] = None,
    section: Optional[str] = None
) -> TestRecord:
    """TestRecord with one observation per value, all on `date`."""
    return TestRecord(
        test_name=name,
        results=[Observation(value=v, date_and_time=date) for v in values],
        unit=unit,
        reference_range=reference_range,
        section=section,
    )


@pytest.fixture
def dictionary():
    """Small dictionary covering heart, blood, urine and other subsets"""
    return Dictionary(DICTIONARY_NAMES)


@pytest.fixture
def fresh_dictionary_cache():
    """Clear the process-wide dictionary cache around a test"""
    get_dictionary.cache_clear()
    yield
    get_dictionary.cache_clear()


@pytest.fixture
def sample_report_text():
    """Lab report text in the shapes the heuristic extractor understands"""
    return "\n".join([
        "ACME Diagnostics",
        "No. 12, 3rd Cross, JP Nagar, Bangalore 560078",
        "Patient Name: John Doe      Age: 45 Years",
        "Page 1 of 2",
        "Test Method Result Unit Reference Range",
        "Total Cholesterol: 210 mg/dl (<200)",
        "HDL Cholesterol: 45 mg/dl (>40)",
        "Hemoglobin 13.5 g/dL 13.0 - 17.0",
        "Vitamin D HPLC 32.5 ng/mL 30-100",
        "Urinary Protein: Absent",
    ])


@pytest.fixture
def make_test_record():
    """Factory fixture for TestRecord instances"""
    return make_record


@pytest.fixture
def fake_extractor_cls():
    """The FakeExtractor class, for tests that build their own"""
    return FakeExtractor
