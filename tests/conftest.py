"""
Pytest fixtures for the pipeline tests.

구성:
- 경로/설정 fixture
- 가짜 벤더 (LLM, OCR, IdP)
- 샘플 LLM 응답 (추출/초안)
"""

import json
from pathlib import Path
from typing import Any

import pytest
import yaml

from src.app.providers.base import (
    LLMError,
    LLMProvider,
    LLMResponse,
    OCRError,
    OCRProvider,
    OCRResult,
    compute_hash,
)
from src.core.records import JsonRecordStore

# =============================================================================
# Path / Config Fixtures
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config(project_root: Path) -> dict:
    """default.yaml 로드."""
    with open(project_root / "default.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def test_config() -> dict:
    """테스트용 설정 (락 대기 짧게)."""
    return {
        "pipeline": {"lock_retry_interval": 0.01, "lock_max_retries": 5},
        "ai": {"ocr": {"enabled": True}, "llm": {"provider": "gemini"}},
        "drafts": {"version_policy": "increment"},
    }


@pytest.fixture
def records(tmp_path: Path, test_config: dict) -> JsonRecordStore:
    """빈 Record Store."""
    return JsonRecordStore(tmp_path / "data", test_config)


# =============================================================================
# Fake Vendors
# =============================================================================


class FakeLLM(LLMProvider):
    """
    미리 정한 응답을 순서대로 반환하는 LLM.

    응답이 Exception이면 raise.
    """

    name = "fake"
    model = "fake-model"

    def __init__(self, *responses: str | Exception):
        self.responses = list(responses)
        self.calls: list[tuple[str, str]] = []
        self.closed = 0

    async def complete_json(self, system: str, user: str) -> LLMResponse:
        self.calls.append((system, user))
        if not self.responses:
            raise LLMError("NO_RESPONSE", "FakeLLM has no queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return LLMResponse(
            text=response,
            provider=self.name,
            model_requested=self.model,
            model_used=self.model,
            prompt_hash=compute_hash(f"{system}\n\n{user}"),
        )

    async def aclose(self) -> None:
        self.closed += 1


class FakeOCR(OCRProvider):
    """고정 텍스트 반환 (error가 있으면 raise)."""

    name = "fake-ocr"

    def __init__(self, text: str = "", error: OCRError | None = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[bytes, str]] = []
        self.closed = 0

    async def extract_text(
        self,
        file_bytes: bytes,
        mime_type: str = "application/pdf",
    ) -> OCRResult:
        self.calls.append((file_bytes, mime_type))
        if self.error is not None:
            raise self.error
        return OCRResult(text=self.text, provider=self.name, page_count=1)

    async def aclose(self) -> None:
        self.closed += 1


@pytest.fixture
def fake_llm_factory():
    return FakeLLM


@pytest.fixture
def fake_ocr_factory():
    return FakeOCR


# =============================================================================
# Sample LLM Outputs
# =============================================================================


@pytest.fixture
def extraction_payload() -> dict[str, Any]:
    """정상 추출 응답."""
    return {
        "metadata": {
            "application_number": "16/123,456",
            "examiner": "Jane Smith",
            "art_unit": "2123",
            "mail_date": "2024-03-01",
        },
        "rejections": [
            {
                "code": "35 USC 103",
                "basis": "Obviousness over Doe in view of Roe",
                "claims": ["1", "2"],
                "summary": "Claims 1-2 are obvious.",
            }
        ],
        "formalities": [{"topic": "Drawings", "detail": "Fig. 3 lacks labels"}],
        "claims": [
            {"number": 1, "text": "A widget comprising..."},
            {"number": 2, "text": "The widget of claim 1..."},
        ],
        "prior_art": [{"kind": "US", "number": "US 9,999,999 B2", "title": "Doe"}],
    }


@pytest.fixture
def extraction_json(extraction_payload: dict[str, Any]) -> str:
    return json.dumps(extraction_payload)


@pytest.fixture
def draft_payload() -> dict[str, Any]:
    """정상 초안 응답."""
    return {
        "outline": "1. Summary\n2. Arguments",
        "arguments": [{"target": "35 USC 103", "text": "Doe does not teach X."}],
        "amendments": [
            {"claim": "1", "proposed": "A widget comprising X and Y", "rationale": "Clarify"}
        ],
        "citations": [
            {"source": "MPEP 2143", "link": "https://www.uspto.gov/web/offices/pac/mpep/s2143.html"},
            {"source": "MPEP 2141"},
        ],
    }


@pytest.fixture
def draft_json(draft_payload: dict[str, Any]) -> str:
    return json.dumps(draft_payload)
