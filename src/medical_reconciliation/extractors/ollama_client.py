# ============================================================================
# src/medical_reconciliation/extractors/ollama_client.py
# ============================================================================
"""
Ollama Extractor Client

Extraction and JSON repair against a local Ollama server using
/api/generate with format="json". Page images are sent base64-encoded for
vision models.

Setup:
    1. Install Ollama: https://ollama.ai
    2. Pull a model: ollama pull llama3.1:8b
    3. Start server: ollama serve
"""

import asyncio
from typing import Any, Dict, Optional, Sequence

import aiohttp

from ..config import llm_settings
from ..utils.exceptions import ExtractorError, ExtractorTimeoutError
from .base import BaseExtractorClient, BinaryFile, encode_images
from .prompts import OBJECT_SCHEMA_HINT, create_extraction_prompt, create_repair_prompt


class OllamaExtractorClient(BaseExtractorClient):
    """
    Ollama-based extractor.

    Config options:
        ollama_host: Ollama server URL (default: OLLAMA_HOST)
        ollama_model: Model name (default: OLLAMA_MODEL)
        max_tokens: Extraction max tokens (default: LLM_MAX_TOKENS)
        repair_max_tokens: Repair max tokens (default: LLM_REPAIR_MAX_TOKENS)
        temperature: Sampling temperature (default: LLM_TEMPERATURE)
        timeout: Per-request timeout in seconds (default: LLM_TIMEOUT)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)

        self.host = self.config.get('ollama_host', llm_settings.OLLAMA_HOST).rstrip('/')
        self.model_name = self.config.get('ollama_model', llm_settings.OLLAMA_MODEL)
        self.max_tokens = self.config.get('max_tokens', llm_settings.LLM_MAX_TOKENS)
        self.repair_max_tokens = self.config.get('repair_max_tokens', llm_settings.LLM_REPAIR_MAX_TOKENS)
        self.temperature = self.config.get('temperature', llm_settings.LLM_TEMPERATURE)
        self.timeout = self.config.get('timeout', llm_settings.LLM_TIMEOUT)

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

        self.logger.info(f"Initialized Ollama extractor: {self.host} / {self.model_name}")

    @property
    def backend_name(self) -> str:
        return "ollama"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()

        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                await self._session.close()

            timeout = aiohttp.ClientTimeout(
                total=None,       # per-request limit is applied with wait_for
                sock_connect=30,
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._session_loop = current_loop

        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    def build_payload(self, prompt: str, max_tokens: int, images: Optional[Sequence[BinaryFile]] = None) -> Dict[str, Any]:
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {
                "num_predict": max_tokens,
                "temperature": self.temperature,
            }
        }
        encoded = encode_images(images)
        if encoded:
            payload["images"] = encoded
        return payload

    async def _generate(self, payload: Dict[str, Any]) -> str:
        session = await self._get_session()

        async def _do_request():
            async with session.post(f"{self.host}/api/generate", json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise ExtractorError(
                        f"Ollama error ({response.status}): {error_text[:500]}",
                        backend=self.backend_name,
                    )
                return await response.json()

        try:
            data = await asyncio.wait_for(_do_request(), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.error(f"Ollama request timed out after {self.timeout}s (model={self.model_name})")
            raise ExtractorTimeoutError(
                f"Extractor request timed out after {self.timeout}s",
                backend=self.backend_name,
            )
        except aiohttp.ClientConnectorError as e:
            raise ExtractorError(
                f"Cannot connect to Ollama at {self.host}. Is it running? Try: ollama serve",
                backend=self.backend_name,
            ) from e
        except aiohttp.ClientError as e:
            raise ExtractorError(f"Ollama request failed: {e}", backend=self.backend_name) from e

        data = data if isinstance(data, dict) else {}
        text = data.get('response') or ''
        self.logger.debug(
            f"Ollama returned {len(text)} chars "
            f"({data.get('eval_count', 0)} tokens) for model {self.model_name}"
        )
        return text

    async def extract(
        self,
        segment: str,
        images: Optional[Sequence[BinaryFile]] = None,
        schema_hint: str = OBJECT_SCHEMA_HINT
    ) -> str:
        prompt = create_extraction_prompt(segment, schema_hint, has_images=bool(images))
        return await self._generate(self.build_payload(prompt, self.max_tokens, images))

    async def repair(self, raw_text: str, schema_hint: str = OBJECT_SCHEMA_HINT) -> str:
        prompt = create_repair_prompt(raw_text, schema_hint)
        return await self._generate(self.build_payload(prompt, self.repair_max_tokens))
