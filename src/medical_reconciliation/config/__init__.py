# ============================================================================
# src/medical_reconciliation/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .base_config import base_settings
from .chunking_config import chunking_settings
from .extraction_config import extraction_settings
from .llm_config import llm_settings
from .logging_config import logging_settings
