"""
test_docai.py - Document AI OCR Provider 테스트
"""

import base64
import json

import httpx
import pytest

from src.app.providers.base import CredentialProvider, OCRError
from src.app.providers.docai import DocumentAIOCRProvider


class StaticCredentials(CredentialProvider):
    def __init__(self):
        self.closed = False

    async def get_token(self) -> str:
        return "access-token"

    async def aclose(self) -> None:
        self.closed = True


def make_provider(handler, **kwargs) -> DocumentAIOCRProvider:
    return DocumentAIOCRProvider(
        credentials=StaticCredentials(),
        project_id="proj",
        location="us",
        processor_id="proc-1",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestInit:
    def test_missing_config(self, monkeypatch):
        for env in ("GOOGLE_DOC_AI_PROJECT_ID", "GOOGLE_DOC_AI_LOCATION",
                    "GOOGLE_DOC_AI_PROCESSOR_ID"):
            monkeypatch.delenv(env, raising=False)

        with pytest.raises(OCRError) as exc_info:
            DocumentAIOCRProvider(credentials=StaticCredentials(), project_id="proj")

        assert exc_info.value.code == "DOCAI_CONFIG_MISSING"
        assert "GOOGLE_DOC_AI_PROCESSOR_ID" in exc_info.value.message
        assert "GOOGLE_DOC_AI_PROJECT_ID" not in exc_info.value.message

    def test_env_config(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_DOC_AI_PROJECT_ID", "p")
        monkeypatch.setenv("GOOGLE_DOC_AI_LOCATION", "eu")
        monkeypatch.setenv("GOOGLE_DOC_AI_PROCESSOR_ID", "x")

        provider = DocumentAIOCRProvider(credentials=StaticCredentials())

        assert provider.process_url == (
            "https://eu-documentai.googleapis.com/v1/"
            "projects/p/locations/eu/processors/x:process"
        )


class TestExtractText:
    @pytest.mark.asyncio
    async def test_success(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(
                200, json={"document": {"text": "Claims 1-3 rejected", "pages": [{}, {}]}}
            )

        result = await make_provider(handler).extract_text(b"%PDF-data")

        assert result.text == "Claims 1-3 rejected"
        assert result.page_count == 2
        assert result.provider == "documentai"

        request = captured[0]
        assert request.headers["Authorization"] == "Bearer access-token"
        body = json.loads(request.content)
        assert body["rawDocument"]["mimeType"] == "application/pdf"
        assert base64.b64decode(body["rawDocument"]["content"]) == b"%PDF-data"

    @pytest.mark.asyncio
    async def test_missing_text_is_empty(self):
        result = await make_provider(lambda r: httpx.Response(200, json={})).extract_text(b"x")

        assert result.text == ""
        assert result.page_count is None

    @pytest.mark.asyncio
    async def test_non_2xx_carries_status_and_body(self):
        def handler(request):
            return httpx.Response(503, text="backend unavailable")

        with pytest.raises(OCRError) as exc_info:
            await make_provider(handler).extract_text(b"x")

        error = exc_info.value
        assert error.code == "DOCAI_ERROR"
        assert error.context["status_code"] == 503
        assert error.context["body"] == "backend unavailable"
        assert "503" in error.message

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timeout", request=request)

        with pytest.raises(OCRError) as exc_info:
            await make_provider(handler).extract_text(b"x")

        assert exc_info.value.code == "DOCAI_REQUEST_FAILED"


class TestAclose:
    @pytest.mark.asyncio
    async def test_closes_client_and_credentials(self):
        provider = make_provider(lambda request: httpx.Response(200, json={}))
        client = provider._get_client()

        await provider.aclose()

        assert client.is_closed
        assert provider.credentials.closed is True
        assert provider._client is None

    @pytest.mark.asyncio
    async def test_unused_provider(self):
        provider = DocumentAIOCRProvider(
            credentials=StaticCredentials(),
            project_id="proj",
            location="us",
            processor_id="proc-1",
        )

        await provider.aclose()

        assert provider.credentials.closed is True
