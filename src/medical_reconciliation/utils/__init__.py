# ============================================================================
# src/medical_reconciliation/utils/__init__.py
# ============================================================================
"""
Utility modules for the reconciliation engine.
"""

from .exceptions import (
    ReconciliationError,
    ConfigurationError,
    DictionaryLoadError,
    ExtractorError,
    ExtractorTimeoutError,
    JSONRecoveryError,
    RepairError,
)

from .logging import (
    setup_logging,
    setup_logging_from_settings,
    get_logger,
    JsonFormatter,
    LogContext,
    current_log_context,
)

from .text import (
    to_null_or_string,
    to_page_number,
)

__all__ = [
    # Exceptions
    'ReconciliationError',
    'ConfigurationError',
    'DictionaryLoadError',
    'ExtractorError',
    'ExtractorTimeoutError',
    'JSONRecoveryError',
    'RepairError',
    # Logging
    'setup_logging',
    'setup_logging_from_settings',
    'get_logger',
    'JsonFormatter',
    'LogContext',
    'current_log_context',
    # Text coercion
    'to_null_or_string',
    'to_page_number',
]
