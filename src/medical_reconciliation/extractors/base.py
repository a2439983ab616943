# ============================================================================
# src/medical_reconciliation/extractors/base.py
# ============================================================================
"""
Base Extractor Client Interface

The extractor is the one opaque collaborator of the engine: given a text
segment (and optional page images) it returns raw text that should contain
JSON. The same collaborator answers JSON repair requests.

Implementations raise ExtractorError on failure; the pipeline turns that
into "no candidates for this segment".
"""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .prompts import OBJECT_SCHEMA_HINT


@dataclass
class BinaryFile:
    """An image handed to the extractor alongside a text segment."""
    data: bytes
    mime_type: str = "image/png"
    filename: Optional[str] = None

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class BaseExtractorClient(ABC):
    """
    Abstract base class for extractor collaborators.

    All backends must implement:
    - extract(): segment (+ images) -> raw model text
    - repair(): broken model text -> raw model text
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def backend_name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def extract(
        self,
        segment: str,
        images: Optional[Sequence[BinaryFile]] = None,
        schema_hint: str = OBJECT_SCHEMA_HINT
    ) -> str:
        """
        Extract test rows from a segment.

        Returns:
            Raw model output, expected to contain JSON
        """
        pass

    @abstractmethod
    async def repair(self, raw_text: str, schema_hint: str = OBJECT_SCHEMA_HINT) -> str:
        """Ask for the largest valid JSON value contained in raw_text."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None


def encode_images(images: Optional[Sequence[BinaryFile]]) -> List[str]:
    return [image.to_base64() for image in images or () if image.data]
