# ============================================================================
# src/medical_reconciliation/utils/logging.py
# ============================================================================
"""
Logging setup and per-request log context.

LogContext keeps its attributes in a context variable, so concurrent
reconcile() calls on one event loop each stamp their own request_id.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

_log_context: ContextVar[Dict[str, Any]] = ContextVar("medical_reconciliation_log_context", default={})
_factory_installed = False

# Attributes every LogRecord carries; anything else came from a log context
_STANDARD_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_json: bool = False
) -> None:
    """
    Configure the root logger for the reconciliation engine.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also write to this file when given
        format_json: Emit one JSON object per line
    """
    log_level = getattr(logging, level.upper())

    if format_json:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)


def setup_logging_from_settings() -> None:
    """Configure logging from LOG_LEVEL / LOG_JSON settings."""
    from ..config import logging_settings

    setup_logging(
        level=logging_settings.LOG_LEVEL,
        format_json=logging_settings.LOG_JSON,
    )


class JsonFormatter(logging.Formatter):
    """One JSON object per record; context attributes go under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        extra = {
            key: value for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        }
        if extra:
            log_data['extra'] = extra

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (pass __name__)."""
    _install_record_factory()
    return logging.getLogger(name)


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())


def _install_record_factory() -> None:
    """Wrap the record factory once so records pick up the active context."""
    global _factory_installed
    if _factory_installed:
        return

    base_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = base_factory(*args, **kwargs)
        for key, value in _log_context.get().items():
            setattr(record, key, value)
        return record

    logging.setLogRecordFactory(record_factory)
    _factory_installed = True


class LogContext:
    """
    Context manager stamping attributes (request_id, ...) onto every record
    logged inside it, including from tasks started inside it. Nested
    contexts add to the outer one.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, **context):
        self.logger = logger
        self.context = context
        self._token = None

    def __enter__(self):
        _install_record_factory()
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)
        self._token = None
