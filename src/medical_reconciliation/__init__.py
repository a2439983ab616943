# ============================================================================
# src/medical_reconciliation/__init__.py
# ============================================================================
"""
Medical Report Reconciliation Engine

Reconciles free text from lab reports and any number of candidate
extractions of it into one deduplicated, categorized list of test results
with a computed clinical status per value.
"""

from .constants.statuses import Status
from .core.records import Observation, TestRecord, Category
from .core.dictionary import Dictionary, get_dictionary
from .core.pipeline import (
    ReconciliationPipeline,
    ReconciliationResult,
    ResultStatus,
    SegmentReport,
)
from .extractors.base import BaseExtractorClient, BinaryFile
from .extractors.ollama_client import OllamaExtractorClient

__version__ = "0.1.0"

__all__ = [
    "Status",
    "Observation",
    "TestRecord",
    "Category",
    "Dictionary",
    "get_dictionary",
    "ReconciliationPipeline",
    "ReconciliationResult",
    "ResultStatus",
    "SegmentReport",
    "BaseExtractorClient",
    "BinaryFile",
    "OllamaExtractorClient",
]
