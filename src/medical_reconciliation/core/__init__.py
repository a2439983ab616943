# ============================================================================
# src/medical_reconciliation/core/__init__.py
# ============================================================================
"""
Core reconciliation components.

The pipeline lives in core.pipeline and is exported from the package root.
"""

from .records import Observation, TestRecord, Category
from .canonical import canonical_key, merge_key, unique_test_names
from .dictionary import Dictionary, get_dictionary, load_parameter_names, reload_dictionary
from .status import RangeBounds, compute_status, parse_range_bounds, pick_first_number
from .merge import MergeEngine, ObservationPolicy, merge_observations, refresh_statuses
from .relevance import (
    filter_medical_records,
    looks_like_address,
    looks_like_interpretation_name,
    looks_like_meaningless_value,
)
from .categories import CategoryAssembler, build_builtin_panel, build_panel_category
