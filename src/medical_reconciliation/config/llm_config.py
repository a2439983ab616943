# ============================================================================
# src/medical_reconciliation/config/llm_config.py
# ============================================================================
"""
Extractor Adapter Configuration (Ollama)
- Host and model
- Max tokens / temperature
- Timeout
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class LLMSettings(BaseSettings):
    OLLAMA_HOST: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL"
    )
    OLLAMA_MODEL: str = Field(
        default="llama3.1:8b",
        description="Model used for extraction and JSON repair"
    )
    LLM_MAX_TOKENS: int = Field(
        default=8192,
        description="Maximum tokens for an extraction call"
    )
    LLM_REPAIR_MAX_TOKENS: int = Field(
        default=2048,
        description="Maximum tokens for a JSON repair call"
    )
    LLM_TEMPERATURE: float = Field(
        default=0.0,
        ge=0.0, le=2.0,
        description="Sampling temperature (0 = deterministic)"
    )
    LLM_TIMEOUT: int = Field(
        default=120,
        ge=1,
        description="Seconds before an extractor call is abandoned"
    )

llm_settings = LLMSettings()
