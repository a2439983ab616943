# ============================================================================
# src/medical_reconciliation/config/chunking_config.py
# ============================================================================
"""
Chunking & Windowing
- Fixed chunk count and overlap
- Extraction window size, overlap and cap
- Prompt text cap
"""

from pydantic import Field
from pydantic_settings import BaseSettings

class ChunkingSettings(BaseSettings):
    MAX_CHUNKS: int = Field(
        default=4,
        ge=1,
        description="Number of fixed-size chunks a document is split into"
    )
    CHUNK_OVERLAP_CHARS: int = Field(
        default=1200,
        ge=0,
        description="Characters added on each interior chunk boundary so rows are not cut"
    )
    WINDOW_CHARS: int = Field(
        default=12000,
        ge=1000,
        description="Size of one extraction window inside a chunk"
    )
    WINDOW_OVERLAP_CHARS: int = Field(
        default=600,
        ge=0,
        description="Overlap between consecutive windows"
    )
    MAX_WINDOWS: int = Field(
        default=8,
        ge=1,
        description="Upper bound on windows per chunk"
    )
    PROMPT_MAX_CHARS: int = Field(
        default=20000,
        ge=1000,
        description="Text beyond this is sampled (head/anchor/tail) before prompting"
    )

chunking_settings = ChunkingSettings()
