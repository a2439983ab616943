# ============================================================================
# src/medical_reconciliation/config/base_config.py
# ============================================================================
"""
Base Configuration
- Knowledge directory
- Parameter dictionary source
"""

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings

class BaseSettingsConfig(BaseSettings):
    # Bundled knowledge files (parameter dictionary)
    KNOWLEDGE_DIR: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent / "knowledge",
        description="Directory holding the bundled parameter dictionary"
    )

    # Dictionary source override
    PARAMETERS_FILE_PATH: Optional[Path] = Field(
        default=None,
        description="Parameter dictionary: JSON {'tests': [...]}, JSON array, or tab-delimited file"
    )

    PARAMETERS_NAME_COLUMN: int = Field(
        default=2,
        ge=0,
        description="Zero-based column holding the parameter name in tab-delimited dictionaries"
    )

    def get_parameters_path(self) -> Path:
        """Resolve the dictionary file, falling back to the bundled JSON"""
        if self.PARAMETERS_FILE_PATH is not None:
            return Path(self.PARAMETERS_FILE_PATH).expanduser().resolve()
        return self.KNOWLEDGE_DIR / "parameters.json"

# Global instance
base_settings = BaseSettingsConfig()
