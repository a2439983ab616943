# ============================================================================
# src/medical_reconciliation/constants/__init__.py
# ============================================================================
"""
Convenient imports for all constants
"""

from .statuses import Status, ALLOWED_STATUSES, coerce_status
from .keywords import (
    METHOD_TOKENS,
    METHOD_KEY_FRAGMENTS,
    HEART_KEYWORDS,
    URINE_KEYWORDS,
    OTHER_FLUID_KEYWORDS,
    ADDRESS_KEYWORD_PATTERN,
    POSTAL_CODE_PATTERN,
    QUALITATIVE_VALUE_PATTERN,
    MEDICAL_NAME_PATTERN,
    NON_TEST_LABEL_PATTERN,
)
from .panels import HEART_PANEL_TESTS, URINOGRAM_PANEL_TESTS, PANELS
