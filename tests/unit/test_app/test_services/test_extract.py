"""
test_extract.py - Extraction Service 테스트

DoD:
- LLM JSON → 정규화된 ExtractionRecord
- 입력 길이 제한 + truncated 플래그 + 경고
- 파싱 실패 → LLM_MALFORMED_OUTPUT (빈 결과로 성공하지 않음)
- 알 수 없는 청구항 참조는 경고만
"""

import base64
import json

import pytest

from src.app.providers.base import LLMError
from src.app.services.extract import (
    EXTRACTION_SYSTEM_PROMPT,
    ExtractionService,
    normalize_extraction,
    truncate_text,
)
from src.core.logging import create_run_log
from src.domain.errors import ErrorCodes, MalformedOutputError, UpstreamError


def warning_codes(run_log) -> list[str]:
    return [w.code for w in run_log.warnings]


# =============================================================================
# truncate_text
# =============================================================================


class TestTruncateText:
    def test_under_limit(self):
        assert truncate_text("abc", 5) == ("abc", False)

    def test_exact_limit(self):
        assert truncate_text("abcde", 5) == ("abcde", False)

    def test_over_limit(self):
        assert truncate_text("abcdef", 5) == ("abcde", True)


# =============================================================================
# normalize_extraction
# =============================================================================


class TestNormalizeExtraction:
    def test_full_payload(self, extraction_payload):
        record = normalize_extraction(extraction_payload)

        assert record.metadata.application_number == "16/123,456"
        assert record.rejections[0].code == "35 USC 103"
        assert record.rejections[0].claims == ["1", "2"]
        assert [c.number for c in record.claims] == [1, 2]
        assert record.prior_art[0].number == "US 9,999,999 B2"
        assert record.formalities[0].topic == "Drawings"

    def test_missing_sections_default_empty(self):
        record = normalize_extraction({})

        assert record.metadata.examiner == ""
        assert record.rejections == []
        assert record.claims == []
        assert record.prior_art == []

    def test_claim_refs_coerced_to_strings(self):
        record = normalize_extraction(
            {"rejections": [{"code": "35 USC 102", "claims": [1, 3]},
                            {"code": "35 USC 112", "claims": "4, 5"},
                            {"code": "35 USC 101", "claims": 7}]}
        )

        assert [r.claims for r in record.rejections] == [["1", "3"], ["4", "5"], ["7"]]

    def test_claim_number_variants(self):
        run_log = create_run_log("ingest")
        record = normalize_extraction(
            {"claims": [{"number": "3", "text": "a"},
                        {"no": 4, "text": "b"},
                        {"number": 5.0},
                        {"number": "claim one"}]},
            run_log,
        )

        assert [c.number for c in record.claims] == [3, 4, 5]
        assert warning_codes(run_log) == [ErrorCodes.ENTRY_DROPPED]

    def test_non_object_entries_dropped(self):
        run_log = create_run_log("ingest")

        record = normalize_extraction(
            {"rejections": ["35 USC 103", {"code": "35 USC 102"}], "prior_art": "Doe"},
            run_log,
        )

        assert [r.code for r in record.rejections] == ["35 USC 102"]
        assert record.prior_art == []
        assert warning_codes(run_log) == [ErrorCodes.ENTRY_DROPPED, ErrorCodes.ENTRY_DROPPED]

    def test_metadata_not_object(self):
        record = normalize_extraction({"metadata": "16/123,456"})

        assert record.metadata.application_number == ""


# =============================================================================
# ExtractionService
# =============================================================================


class TestExtractionService:
    @pytest.mark.asyncio
    async def test_extract_from_text(self, fake_llm_factory, extraction_json):
        llm = fake_llm_factory(extraction_json)
        service = ExtractionService({}, llm)
        run_log = create_run_log("ingest")

        record = await service.extract_from_text("OFFICE ACTION ...", run_log)

        assert record.truncated is False
        assert len(record.claims) == 2
        assert run_log.warnings == []
        system, user = llm.calls[0]
        assert system == EXTRACTION_SYSTEM_PROMPT
        assert "Do not invent data" in system
        assert user.endswith("OFFICE ACTION ...")
        [call] = run_log.llm_calls
        assert call["purpose"] == "extraction"
        assert call["model_used"] == "fake-model"
        assert call["prompt_hash"].startswith("sha256:")

    @pytest.mark.asyncio
    async def test_text_truncated(self, fake_llm_factory, extraction_json):
        llm = fake_llm_factory(extraction_json)
        service = ExtractionService({"extraction": {"max_input_chars": 10}}, llm)
        run_log = create_run_log("ingest")

        record = await service.extract_from_text("x" * 25, run_log)

        assert record.truncated is True
        assert llm.calls[0][1].endswith("x" * 10)
        assert "x" * 11 not in llm.calls[0][1]
        assert warning_codes(run_log) == [ErrorCodes.INPUT_TRUNCATED]

    @pytest.mark.asyncio
    async def test_default_text_limit(self, fake_llm_factory, extraction_json):
        llm = fake_llm_factory(extraction_json)

        record = await ExtractionService({}, llm).extract_from_text("y" * 120_001)

        assert record.truncated is True

    @pytest.mark.asyncio
    async def test_extract_from_pdf_base64(self, fake_llm_factory, extraction_json):
        llm = fake_llm_factory(extraction_json)
        service = ExtractionService({"extraction": {"max_base64_chars": 8}}, llm)
        run_log = create_run_log("ingest")
        pdf = b"%PDF-1.7 some bytes"

        record = await service.extract_from_pdf(pdf, run_log)

        encoded = base64.b64encode(pdf).decode("ascii")
        assert llm.calls[0][1].endswith(encoded[:8])
        assert record.truncated is True
        assert warning_codes(run_log) == [ErrorCodes.INPUT_TRUNCATED]

    @pytest.mark.asyncio
    async def test_unknown_claim_reference_warns(self, fake_llm_factory, extraction_payload):
        extraction_payload["rejections"][0]["claims"] = ["1", "9"]
        llm = fake_llm_factory(json.dumps(extraction_payload))
        run_log = create_run_log("ingest")

        record = await ExtractionService({}, llm).extract_from_text("text", run_log)

        assert record.rejections[0].claims == ["1", "9"]
        assert warning_codes(run_log) == [ErrorCodes.UNKNOWN_CLAIM_REFERENCE]
        assert run_log.warnings[0].detail == {"claims": ["9"]}

    @pytest.mark.asyncio
    async def test_malformed_output(self, fake_llm_factory):
        llm = fake_llm_factory("Sorry, I can't read this document.")
        run_log = create_run_log("ingest")

        with pytest.raises(MalformedOutputError) as exc_info:
            await ExtractionService({}, llm).extract_from_text("text", run_log)

        assert exc_info.value.code == ErrorCodes.LLM_MALFORMED_OUTPUT
        assert len(run_log.llm_calls) == 1

    @pytest.mark.asyncio
    async def test_llm_error(self, fake_llm_factory):
        llm = fake_llm_factory(LLMError("NO_FALLBACK", "AI generation failed: 503"))

        with pytest.raises(UpstreamError) as exc_info:
            await ExtractionService({}, llm).extract_from_text("text")

        assert exc_info.value.code == ErrorCodes.LLM_FAILED
        assert exc_info.value.context["vendor_code"] == "NO_FALLBACK"
