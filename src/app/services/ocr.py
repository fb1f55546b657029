"""
OCR Service: PDF → 텍스트.

- OCR은 별도 단계로 분리 (디버깅 용이, cleanup-ocr에서 재사용)
- 재시도 없음: 벤더 실패는 그대로 호출 단계 실패
- OCRError → UpstreamError (벤더 status_code/body 유지)
"""

import logging

from src.app.providers.base import OCRError, OCRProvider, OCRResult
from src.core.logging import record_ocr_call
from src.domain.errors import ErrorCodes, UpstreamError
from src.domain.schemas import RunLog

logger = logging.getLogger(__name__)


class OCRService:
    """
    OCR 서비스.

    Usage:
        service = OCRService(provider)
        text = await service.extract_text(pdf_bytes, run_log=run_log)
    """

    def __init__(self, provider: OCRProvider):
        self.provider = provider

    async def run(
        self,
        file_bytes: bytes,
        mime_type: str = "application/pdf",
        run_log: RunLog | None = None,
    ) -> OCRResult:
        """
        OCR 실행. 성공 시 run_log.ocr_calls에 메타 기록.

        Raises:
            UpstreamError: OCR_FAILED (벤더 메시지 포함)
        """
        try:
            result = await self.provider.extract_text(file_bytes, mime_type)
        except OCRError as e:
            logger.error(f"OCR failed ({e.code}): {e.message}")
            raise UpstreamError(
                ErrorCodes.OCR_FAILED,
                e.message,
                vendor_code=e.code,
                **e.context,
            ) from e

        logger.info(
            f"OCR completed: {len(result.text)} chars, pages={result.page_count}"
        )
        record_ocr_call(run_log, result.to_dict())
        return result

    async def extract_text(
        self,
        file_bytes: bytes,
        mime_type: str = "application/pdf",
        run_log: RunLog | None = None,
    ) -> str:
        """PDF → 전체 텍스트 (없으면 "")."""
        result = await self.run(file_bytes, mime_type, run_log)
        return result.text
