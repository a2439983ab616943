# ============================================================================
# tests/unit/test_ollama_client.py
# ============================================================================
"""
Tests for the Ollama extractor adapter

The HTTP session is replaced with an in-test fake; no server is needed.
"""

import asyncio
import base64

import aiohttp
import pytest

from medical_reconciliation.extractors.base import BinaryFile
from medical_reconciliation.extractors.ollama_client import OllamaExtractorClient
from medical_reconciliation.extractors.prompts import ARRAY_SCHEMA_HINT
from medical_reconciliation.utils.exceptions import ExtractorError, ExtractorTimeoutError


class FakeResponse:
    def __init__(self, status=200, body=None, text=""):
        self.status = status
        self.body = body
        self._text = text

    async def json(self):
        return self.body

    async def text(self):
        return self._text


class FakeRequest:
    def __init__(self, session):
        self.session = session

    async def __aenter__(self):
        if self.session.delay:
            await asyncio.sleep(self.session.delay)
        if self.session.error is not None:
            raise self.session.error
        return self.session.response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, response=None, error=None, delay=0.0):
        self.response = response or FakeResponse(body={"response": '{"tests": []}', "eval_count": 5})
        self.error = error
        self.delay = delay
        self.posted = []

    def post(self, url, json=None):
        self.posted.append((url, json))
        return FakeRequest(self)


def _client(monkeypatch, session, **config):
    client = OllamaExtractorClient({"ollama_host": "http://ollama.test:11434/", "ollama_model": "test-model", **config})

    async def get_session():
        return session

    monkeypatch.setattr(client, "_get_session", get_session)
    return client


class TestPayload:
    """Test request payload construction"""

    def test_json_format_and_options(self):
        client = OllamaExtractorClient({"ollama_model": "test-model", "temperature": 0.0})

        payload = client.build_payload("prompt", 512)

        assert payload["model"] == "test-model"
        assert payload["format"] == "json"
        assert payload["stream"] is False
        assert payload["options"] == {"num_predict": 512, "temperature": 0.0}
        assert "images" not in payload

    def test_images_are_base64(self):
        client = OllamaExtractorClient()

        payload = client.build_payload("prompt", 512, [BinaryFile(b"page"), BinaryFile(b"")])

        assert payload["images"] == [base64.b64encode(b"page").decode("ascii")]


class TestRequests:
    """Test extract/repair against a fake session"""

    @pytest.mark.asyncio
    async def test_extract(self, monkeypatch):
        session = FakeSession()
        client = _client(monkeypatch, session)

        raw = await client.extract("Hemoglobin 13.5 g/dL")

        assert raw == '{"tests": []}'
        url, payload = session.posted[0]
        assert url == "http://ollama.test:11434/api/generate"
        assert "Hemoglobin 13.5 g/dL" in payload["prompt"]
        assert payload["options"]["num_predict"] == client.max_tokens

    @pytest.mark.asyncio
    async def test_extract_with_images(self, monkeypatch):
        session = FakeSession()
        client = _client(monkeypatch, session)

        await client.extract("page text", images=[BinaryFile(b"page")])

        payload = session.posted[0][1]
        assert "attached report page images" in payload["prompt"]
        assert len(payload["images"]) == 1

    @pytest.mark.asyncio
    async def test_repair(self, monkeypatch):
        session = FakeSession()
        client = _client(monkeypatch, session, repair_max_tokens=256)

        await client.repair('{"tests": [', ARRAY_SCHEMA_HINT)

        payload = session.posted[0][1]
        assert ARRAY_SCHEMA_HINT in payload["prompt"]
        assert '{"tests": [' in payload["prompt"]
        assert payload["options"]["num_predict"] == 256

    @pytest.mark.asyncio
    async def test_null_body_is_empty_output(self, monkeypatch):
        session = FakeSession(response=FakeResponse(body=None))
        client = _client(monkeypatch, session)

        assert await client.extract("Hemoglobin 13.5 g/dL") == ""

    @pytest.mark.asyncio
    async def test_http_error(self, monkeypatch):
        session = FakeSession(response=FakeResponse(status=500, text="model not found"))
        client = _client(monkeypatch, session)

        with pytest.raises(ExtractorError) as exc_info:
            await client.extract("text")

        assert exc_info.value.backend == "ollama"
        assert "500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, monkeypatch):
        client = _client(monkeypatch, FakeSession(delay=1.0), timeout=0.01)

        with pytest.raises(ExtractorTimeoutError):
            await client.extract("text")

    @pytest.mark.asyncio
    async def test_transport_error(self, monkeypatch):
        client = _client(monkeypatch, FakeSession(error=aiohttp.ClientPayloadError("broken body")))

        with pytest.raises(ExtractorError) as exc_info:
            await client.extract("text")

        assert "Ollama request failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_close_without_session(self):
        client = OllamaExtractorClient()
        await client.close()
        assert client._session is None
