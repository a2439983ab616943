# ============================================================================
# src/medical_reconciliation/extractors/__init__.py
# ============================================================================
"""
Extraction side of the engine: chunking, heuristic rows, the extractor
collaborator interface, JSON recovery and payload normalization.
"""

from .base import BaseExtractorClient, BinaryFile
from .chunking import (
    TextChunk,
    slice_text_fixed,
    slice_text_fixed_with_overlap,
    split_text_windows,
    cap_text_for_prompt,
    cap_text_with_anchors,
)
from .heuristic_extractor import heuristic_extract, estimate_total_tests
from .json_recovery import (
    JSONRecovery,
    RecoveryMethod,
    RecoveryOutcome,
    parse_json_object_loose,
    parse_json_array_loose,
    recover_json,
)
from .normalizer import normalize_candidates, normalize_record, split_groups
from .ollama_client import OllamaExtractorClient
from .worker_pool import WorkerPool

__all__ = [
    "BaseExtractorClient",
    "BinaryFile",
    "TextChunk",
    "slice_text_fixed",
    "slice_text_fixed_with_overlap",
    "split_text_windows",
    "cap_text_for_prompt",
    "cap_text_with_anchors",
    "heuristic_extract",
    "estimate_total_tests",
    "JSONRecovery",
    "RecoveryMethod",
    "RecoveryOutcome",
    "parse_json_object_loose",
    "parse_json_array_loose",
    "recover_json",
    "normalize_candidates",
    "normalize_record",
    "split_groups",
    "OllamaExtractorClient",
    "WorkerPool",
]
