# ============================================================================
# src/medical_reconciliation/config/logging_config.py
# ============================================================================
"""
Logging Settings
- Log level
- JSON output
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class LoggingSettings(BaseSettings):
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit JSON log lines instead of plain text"
    )

logging_settings = LoggingSettings()
