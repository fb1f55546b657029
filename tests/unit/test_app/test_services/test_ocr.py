"""
test_ocr.py - OCRService 테스트
"""

import pytest

from src.app.providers.base import OCRError
from src.app.services.ocr import OCRService
from src.core.logging import create_run_log
from src.domain.errors import ErrorCodes, UpstreamError


class TestOCRService:
    @pytest.mark.asyncio
    async def test_extract_text(self, fake_ocr_factory):
        provider = fake_ocr_factory(text="Claims 1-20 are rejected")

        text = await OCRService(provider).extract_text(b"%PDF", "application/pdf")

        assert text == "Claims 1-20 are rejected"
        assert provider.calls == [(b"%PDF", "application/pdf")]

    @pytest.mark.asyncio
    async def test_vendor_error_keeps_status_and_body(self, fake_ocr_factory):
        provider = fake_ocr_factory(
            error=OCRError("DOCAI_ERROR", "DocAI error 500: oops", status_code=500, body="oops")
        )

        with pytest.raises(UpstreamError) as exc_info:
            await OCRService(provider).run(b"%PDF")

        error = exc_info.value
        assert error.code == ErrorCodes.OCR_FAILED
        assert error.message == "DocAI error 500: oops"
        assert error.context["vendor_code"] == "DOCAI_ERROR"
        assert error.context["status_code"] == 500
        assert error.context["body"] == "oops"

    @pytest.mark.asyncio
    async def test_records_call_in_run_log(self, fake_ocr_factory):
        run_log = create_run_log("ingest")

        await OCRService(fake_ocr_factory(text="abc")).extract_text(b"%PDF", run_log=run_log)

        assert run_log.ocr_calls == [{"provider": "fake-ocr", "page_count": 1, "chars": 3}]

    @pytest.mark.asyncio
    async def test_failed_call_not_recorded(self, fake_ocr_factory):
        run_log = create_run_log("ingest")
        provider = fake_ocr_factory(error=OCRError("DOCAI_ERROR", "DocAI error 503"))

        with pytest.raises(UpstreamError):
            await OCRService(provider).run(b"%PDF", run_log=run_log)

        assert run_log.ocr_calls == []
