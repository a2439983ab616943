# ============================================================================
# src/medical_reconciliation/config/extraction_config.py
# ============================================================================
"""
Extraction & Reconciliation
- Concurrency limit for extractor calls
- Heuristic extractor mode
- JSON repair tiers
- Observation merge policy
- Category assembly
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class ExtractionSettings(BaseSettings):
    MAX_CONCURRENT_EXTRACTIONS: int = Field(
        default=2,
        ge=1,
        description="Parallel extractor calls per request"
    )
    HEURISTIC_MODE: str = Field(
        default="always",
        pattern="^(always|fallback|off)$",
        description="always: merge heuristic rows as backstop; fallback: only when AI yields nothing; off"
    )
    ENABLE_AI_REPAIR: bool = Field(
        default=True,
        description="Send unparseable model output to the repair collaborator"
    )
    USE_LOCAL_JSON_REPAIR: bool = Field(
        default=True,
        description="Try json_repair locally before asking the repair collaborator"
    )
    OBSERVATION_POLICY: str = Field(
        default="first_source",
        pattern="^(first_source|latest_source|union)$",
        description="Which source wins when two sources report the same date"
    )
    APPLY_PREFERRED_NAMES: bool = Field(
        default=True,
        description="Rename dictionary tests to their shortest known spelling"
    )
    MAX_EXPECTED_TESTS: int = Field(
        default=5000,
        ge=1,
        description="Cap on the heuristic expected-test estimate"
    )
    RAW_PREVIEW_CHARS: int = Field(
        default=2000,
        ge=0,
        description="Characters of raw model output kept for diagnostics"
    )
    AI_DEBUG: bool = Field(
        default=False,
        description="Attach raw model output previews to segment reports"
    )
    DEFAULT_CATEGORY: str = Field(
        default="Other Tests",
        description="Category for records without a section"
    )
    CATEGORY_OVERLAP_THRESHOLD: float = Field(
        default=0.5,
        ge=0.0, le=1.0,
        description="Share of the smaller category's tests that must overlap before two categories merge"
    )

extraction_settings = ExtractionSettings()
