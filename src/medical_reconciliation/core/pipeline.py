# ============================================================================
# src/medical_reconciliation/core/pipeline.py
# ============================================================================
"""
Reconciliation Pipeline

text -> chunks -> windows -> extractor (parallel, bounded)
     -> JSON recovery -> normalize -> merge -> relevance filter
     -> preferred names -> categories (optional)

Extraction is the only suspension point. Everything after the fan-out runs
sequentially on buffered results, in an order fixed by segment position
and recovery method rather than arrival order:

    caller candidate sets
    cleanly parsed segments, in segment order
    repaired segments, in segment order
    heuristic rows

Collaborator failures degrade to fewer candidates; cancellation propagates
and nothing partial is returned.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import chunking_settings, extraction_settings
from ..extractors.base import BaseExtractorClient, BinaryFile
from ..extractors.chunking import (
    TextChunk,
    cap_text_with_anchors,
    slice_text_fixed_with_overlap,
    split_text_windows,
)
from ..extractors.heuristic_extractor import estimate_total_tests, heuristic_extract
from ..extractors.json_recovery import JSONRecovery, RecoveryMethod
from ..extractors.normalizer import normalize_candidates, split_groups
from ..extractors.prompts import OBJECT_SCHEMA_HINT
from ..extractors.worker_pool import WorkerPool
from ..utils.exceptions import ConfigurationError, ExtractorError
from ..utils.logging import LogContext, get_logger
from .categories import CategoryAssembler, build_builtin_panel
from .dictionary import Dictionary, get_dictionary
from .merge import MergeEngine
from .records import Category, TestRecord
from .relevance import filter_medical_records

logger = get_logger(__name__)

HEURISTIC_MODES = ("always", "fallback", "off")


class ResultStatus(str, Enum):
    """Why a result is (or is not) empty."""
    OK = "ok"
    NO_TEXT = "no_text"
    EXTRACTION_FAILED = "extraction_failed"
    NO_MEDICAL_CONTENT = "no_medical_content"


@dataclass
class SegmentReport:
    """Diagnostics for one extractor call."""
    index: int
    chunk_index: int
    window_index: Optional[int] = None
    method: RecoveryMethod = RecoveryMethod.FAILED
    candidate_count: int = 0
    raw_chars: int = 0
    error: Optional[str] = None
    raw_preview: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "index": self.index,
            "chunkIndex": self.chunk_index,
            "windowIndex": self.window_index,
            "method": self.method.value,
            "candidateCount": self.candidate_count,
            "rawChars": self.raw_chars,
            "error": self.error,
        }
        if self.raw_preview is not None:
            data["aiResponsePreview"] = self.raw_preview
        return data


@dataclass
class ReconciliationResult:
    records: List[TestRecord] = field(default_factory=list)
    categories: Optional[List[Category]] = None
    status: ResultStatus = ResultStatus.OK
    chunk_index: Optional[int] = None
    total_chunks: int = 1
    chunk_size: int = 0
    estimated_total_tests_in_report: Optional[int] = None
    estimated_total_tests_in_chunk: Optional[int] = None
    segments: List[SegmentReport] = field(default_factory=list)
    request_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.records

    def panel(self, name: str, include_missing: bool = True) -> Category:
        """Built-in panel view (heart, urinogram) over the reconciled records."""
        return build_builtin_panel(name, self.records, include_missing)

    def to_dict(self, include_diagnostics: bool = False) -> Dict[str, Any]:
        if self.categories is not None:
            tests = [c.to_dict() for c in self.categories]
        else:
            tests = [r.to_dict() for r in self.records]

        data = {
            "tests": tests,
            "status": self.status.value,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "chunkSize": self.chunk_size,
            "estimatedTotalTestsInReport": self.estimated_total_tests_in_report,
            "estimatedTotalTestsInChunk": self.estimated_total_tests_in_chunk,
        }
        if include_diagnostics:
            data["segments"] = [s.to_dict() for s in self.segments]
        return data


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class _Segment:
    index: int
    chunk_index: int
    window_index: Optional[int]
    text: str
    images: Optional[Sequence[BinaryFile]] = None


class ReconciliationPipeline:
    """
    Reconcile report text and/or candidate extractions into one result set.

    Config options (each falls back to the settings of the same name):
        max_concurrent_extractions, heuristic_mode, observation_policy,
        apply_preferred_names, max_chunks, chunk_overlap_chars,
        window_chars, window_overlap_chars, max_windows, prompt_max_chars,
        max_expected_tests, ai_debug, enable_ai_repair, use_local_json_repair
    """

    def __init__(
        self,
        extractor: Optional[BaseExtractorClient] = None,
        dictionary: Optional[Dictionary] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        self.config = config or {}
        self.extractor = extractor
        self.dictionary = dictionary if dictionary is not None else get_dictionary()

        self.merge_engine = MergeEngine(self.config)
        self.recovery = JSONRecovery(repair_client=extractor, config=self.config)
        self.assembler = CategoryAssembler(self.dictionary, self.config, self.merge_engine)
        self.pool = WorkerPool(self.config.get(
            'max_concurrent_extractions', extraction_settings.MAX_CONCURRENT_EXTRACTIONS
        ))

        self.heuristic_mode = self.config.get('heuristic_mode', extraction_settings.HEURISTIC_MODE)
        if self.heuristic_mode not in HEURISTIC_MODES:
            raise ConfigurationError(f"Unknown heuristic_mode: {self.heuristic_mode}")
        self.apply_preferred_names = self.config.get(
            'apply_preferred_names', extraction_settings.APPLY_PREFERRED_NAMES
        )
        self.max_expected_tests = self.config.get('max_expected_tests', extraction_settings.MAX_EXPECTED_TESTS)
        self.ai_debug = self.config.get('ai_debug', extraction_settings.AI_DEBUG)

        self.max_chunks = self.config.get('max_chunks', chunking_settings.MAX_CHUNKS)
        self.chunk_overlap = self.config.get('chunk_overlap_chars', chunking_settings.CHUNK_OVERLAP_CHARS)
        self.window_chars = self.config.get('window_chars', chunking_settings.WINDOW_CHARS)
        self.window_overlap = self.config.get('window_overlap_chars', chunking_settings.WINDOW_OVERLAP_CHARS)
        self.max_windows = self.config.get('max_windows', chunking_settings.MAX_WINDOWS)
        self.prompt_max_chars = self.config.get('prompt_max_chars', chunking_settings.PROMPT_MAX_CHARS)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def reconcile(
        self,
        text: Optional[str],
        candidates: Optional[Sequence[Any]] = None,
        images: Optional[Sequence[BinaryFile]] = None,
        chunk_index: Optional[int] = None,
        categorize: bool = False,
        group_by: str = "section",
        anchors: Optional[Sequence[str]] = None,
        request_id: Optional[str] = None
    ) -> ReconciliationResult:
        """
        Full reconciliation of one request.

        Args:
            text: Report text (may be empty when only candidates are given)
            candidates: Already-extracted payloads, one candidate set each
            images: Page images sent with every chunk's extraction call
            chunk_index: Process only this (clamped) chunk; None for all
            categorize: Return categories instead of a flat list
            group_by: "section" or "dictionary" for flat inputs
            anchors: Terms to centre over-long prompts on
            request_id: Stamped on every log record of this call; generated when omitted
        """
        request_id = request_id or _new_request_id()
        with LogContext(logger, request_id=request_id):
            result = await self._reconcile(text, candidates, images, chunk_index, categorize, group_by, anchors)
        result.request_id = request_id
        return result

    async def _reconcile(
        self,
        text: Optional[str],
        candidates: Optional[Sequence[Any]],
        images: Optional[Sequence[BinaryFile]],
        chunk_index: Optional[int],
        categorize: bool,
        group_by: str,
        anchors: Optional[Sequence[str]]
    ) -> ReconciliationResult:
        text = text or ""
        candidates = list(candidates or [])
        chunks = self._plan_chunks(text, chunk_index)
        processed_text = text if chunk_index is None else chunks[0].text

        segments = self._plan_segments(chunks, images, anchors) if self.extractor else []
        logger.info(
            f"Reconciling {len(text)} chars: {len(chunks)} chunk(s), "
            f"{len(segments)} extractor segment(s), {len(candidates)} candidate set(s)"
        )

        outcomes = await self.pool.map(segments, self._run_segment)

        clean = [payload for report, payload in outcomes if payload is not None and not self._is_repaired(report)]
        repaired = [payload for report, payload in outcomes if payload is not None and self._is_repaired(report)]
        extracted_count = sum(report.candidate_count for report, _ in outcomes)

        heuristic_rows = []
        if self.heuristic_mode == "always" or (self.heuristic_mode == "fallback" and extracted_count == 0):
            heuristic_rows = heuristic_extract(processed_text)
            if heuristic_rows:
                logger.debug(f"Heuristic extractor found {len(heuristic_rows)} row(s)")

        payloads = candidates + clean + repaired
        if heuristic_rows:
            payloads.append(heuristic_rows)

        result = self._assemble(payloads, categorize, group_by)
        result.segments = [report for report, _ in outcomes]
        result.chunk_index = None if chunk_index is None else chunks[0].chunk_index
        result.total_chunks = chunks[0].total_chunks
        result.chunk_size = chunks[0].chunk_size
        result.estimated_total_tests_in_report = estimate_total_tests(text, self.max_expected_tests)
        result.estimated_total_tests_in_chunk = estimate_total_tests(processed_text, self.max_expected_tests)
        result.status = self._result_status(
            result,
            has_input=bool(text.strip()) or bool(candidates) or bool(images),
            raw_obtained=bool(candidates) or bool(heuristic_rows)
            or any(report.raw_chars for report, _ in outcomes),
            attempted=bool(segments),
            any_parsed=bool(candidates) or bool(clean) or bool(repaired) or bool(heuristic_rows),
        )

        logger.info(
            f"Reconciled {len(result.records)} test(s) "
            f"({len(result.categories) if result.categories is not None else 0} categories), "
            f"status={result.status.value}"
        )
        return result

    def reconcile_candidates(
        self,
        candidate_sets: Sequence[Any],
        categorize: bool = False,
        group_by: str = "section",
        request_id: Optional[str] = None
    ) -> ReconciliationResult:
        """Reconcile already-extracted payloads; no text, no extractor."""
        candidate_sets = list(candidate_sets or [])
        request_id = request_id or _new_request_id()
        with LogContext(logger, request_id=request_id):
            result = self._assemble(candidate_sets, categorize, group_by)
        result.request_id = request_id
        result.status = self._result_status(
            result,
            has_input=bool(candidate_sets),
            raw_obtained=bool(candidate_sets),
            attempted=False,
            any_parsed=bool(candidate_sets),
        )
        return result

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def _plan_chunks(self, text: str, chunk_index: Optional[int]) -> List[TextChunk]:
        first = slice_text_fixed_with_overlap(text, chunk_index or 0, self.max_chunks, self.chunk_overlap)
        if chunk_index is not None:
            return [first]
        return [first] + [
            slice_text_fixed_with_overlap(text, i, self.max_chunks, self.chunk_overlap)
            for i in range(1, first.total_chunks)
        ]

    def _plan_segments(
        self,
        chunks: List[TextChunk],
        images: Optional[Sequence[BinaryFile]],
        anchors: Optional[Sequence[str]]
    ) -> List[_Segment]:
        segments = []
        for chunk in chunks:
            if images:
                # Vision calls see the whole chunk once, alongside the pages
                text = cap_text_with_anchors(chunk.text, anchors or (), self.prompt_max_chars)
                segments.append(_Segment(len(segments), chunk.chunk_index, None, text, images))
                continue

            windows = split_text_windows(chunk.text, self.window_chars, self.window_overlap, self.max_windows)
            for window_index, window in enumerate(windows):
                text = cap_text_with_anchors(window, anchors or (), self.prompt_max_chars)
                segments.append(_Segment(len(segments), chunk.chunk_index, window_index, text))
        return segments

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def _run_segment(self, segment: _Segment) -> Tuple[SegmentReport, Optional[Any]]:
        report = SegmentReport(segment.index, segment.chunk_index, segment.window_index)

        try:
            raw = await self.extractor.extract(segment.text, segment.images, OBJECT_SCHEMA_HINT)
        except ExtractorError as e:
            logger.warning(f"Segment {segment.index} extraction failed ({e.backend}): {e}")
            report.error = str(e)
            return report, None
        except Exception as e:
            logger.warning(f"Segment {segment.index} extraction failed: {e}")
            report.error = str(e)
            return report, None

        raw = raw or ""
        report.raw_chars = len(raw)
        outcome = await self.recovery.recover(raw)
        report.method = outcome.method
        if self.ai_debug:
            report.raw_preview = outcome.raw_preview

        if not outcome.ok:
            report.error = "unparseable extractor output" if raw.strip() else "empty extractor output"
            logger.warning(f"Segment {segment.index}: {report.error}")
            return report, None

        if outcome.method != RecoveryMethod.DIRECT:
            logger.info(f"Segment {segment.index} recovered via {outcome.method.value}")

        report.candidate_count = len(normalize_candidates(outcome.data))
        return report, outcome.data

    @staticmethod
    def _is_repaired(report: SegmentReport) -> bool:
        return report.method in (RecoveryMethod.LOCAL_REPAIR, RecoveryMethod.AI_REPAIR)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def _reconcile_sets(self, candidate_sets: List[List[TestRecord]]) -> List[TestRecord]:
        merged = self.merge_engine.merge_all(candidate_sets)
        kept = filter_medical_records(merged, self.dictionary)
        if self.apply_preferred_names:
            for record in kept:
                record.test_name = self.dictionary.preferred_name(record.test_name)
        logger.debug(f"Merged {len(merged)} record(s); {len(kept)} passed the relevance filter")
        return kept

    def _assemble(self, payloads: List[Any], categorize: bool, group_by: str) -> ReconciliationResult:
        if not categorize:
            records = self._reconcile_sets([normalize_candidates(p) for p in payloads])
            return ReconciliationResult(records=records)

        flat_sets: List[List[TestRecord]] = []
        group_sets: Dict[str, Tuple[str, List[List[TestRecord]]]] = {}
        for payload in payloads:
            groups = split_groups(payload)
            if groups is None:
                flat_sets.append(normalize_candidates(payload))
                continue
            for name, items in groups:
                key = " ".join(name.split()).lower()
                group_sets.setdefault(key, (name, []))[1].append(
                    normalize_candidates(items, default_section=name)
                )

        grouped = [
            (name, self._reconcile_sets(sets))
            for name, sets in group_sets.values()
        ]
        categories = self.assembler.from_groups(grouped)
        if flat_sets:
            flat_records = self._reconcile_sets(flat_sets)
            categories = self.assembler.finalize(
                categories + self.assembler.from_records(flat_records, group_by)
            )

        records = [record for category in categories for record in category.tests]
        return ReconciliationResult(records=records, categories=categories)

    @staticmethod
    def _result_status(
        result: ReconciliationResult,
        has_input: bool,
        raw_obtained: bool,
        attempted: bool,
        any_parsed: bool
    ) -> ResultStatus:
        if result.records:
            return ResultStatus.OK
        if not has_input:
            return ResultStatus.NO_TEXT
        if attempted and not raw_obtained:
            return ResultStatus.EXTRACTION_FAILED
        if attempted and not any_parsed:
            return ResultStatus.EXTRACTION_FAILED
        return ResultStatus.NO_MEDICAL_CONTENT
