# ============================================================================
# src/medical_reconciliation/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the reconciliation engine.

None of these are fatal to a reconciliation request: the pipeline catches
collaborator failures per segment and degrades to smaller result sets.
"""


class ReconciliationError(Exception):
    """Base exception for all reconciliation errors."""
    pass


class ConfigurationError(ReconciliationError):
    """Invalid configuration."""
    pass


class DictionaryLoadError(ReconciliationError):
    """Parameter dictionary could not be read or parsed."""
    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path


class ExtractorError(ReconciliationError):
    """Extractor collaborator failed for one segment."""
    def __init__(self, message: str, backend: str = "unknown"):
        super().__init__(message)
        self.backend = backend


class ExtractorTimeoutError(ExtractorError):
    """Extractor collaborator did not answer in time."""
    pass


class JSONRecoveryError(ReconciliationError):
    """No JSON could be recovered from model output."""
    def __init__(self, message: str, raw_preview: str = ""):
        super().__init__(message)
        self.raw_preview = raw_preview


class RepairError(JSONRecoveryError):
    """The secondary repair request failed."""
    pass
