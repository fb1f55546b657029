"""
Google Document AI OCR Provider (REST, 동기 process 호출).

- 인증: CredentialProvider의 bearer 토큰
- 요청: rawDocument.content = base64(PDF)
- non-2xx → OCRError (status_code, body 포함), 재시도 없음
"""

import base64
import logging
import os
from datetime import UTC, datetime
from typing import Any

import httpx

from .base import CredentialProvider, OCRError, OCRProvider, OCRResult

logger = logging.getLogger(__name__)

PROCESS_URL_TEMPLATE = (
    "https://{location}-documentai.googleapis.com/v1/"
    "projects/{project_id}/locations/{location}/processors/{processor_id}:process"
)


class DocumentAIOCRProvider(OCRProvider):
    """
    Document AI Provider.

    Usage:
        provider = DocumentAIOCRProvider(
            project_id="my-project",
            location="us",
            processor_id="abc123",
            credentials=ServiceAccountCredentialProvider.from_env(),
        )
        result = await provider.extract_text(pdf_bytes)
    """

    name = "documentai"

    def __init__(
        self,
        credentials: CredentialProvider,
        project_id: str | None = None,
        location: str | None = None,
        processor_id: str | None = None,
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Args:
            credentials: bearer 토큰 제공자
            project_id: GCP 프로젝트 (환경변수 GOOGLE_DOC_AI_PROJECT_ID)
            location: 프로세서 위치 (환경변수 GOOGLE_DOC_AI_LOCATION)
            processor_id: 프로세서 ID (환경변수 GOOGLE_DOC_AI_PROCESSOR_ID)
            timeout: 요청 타임아웃(초)
            http_client: 주입용 (테스트)

        Raises:
            OCRError: 프로세서 설정 누락 (fail-fast)
        """
        self.credentials = credentials
        self.project_id = project_id or os.environ.get("GOOGLE_DOC_AI_PROJECT_ID")
        self.location = location or os.environ.get("GOOGLE_DOC_AI_LOCATION")
        self.processor_id = processor_id or os.environ.get("GOOGLE_DOC_AI_PROCESSOR_ID")

        missing = [
            env
            for env, value in (
                ("GOOGLE_DOC_AI_PROJECT_ID", self.project_id),
                ("GOOGLE_DOC_AI_LOCATION", self.location),
                ("GOOGLE_DOC_AI_PROCESSOR_ID", self.processor_id),
            )
            if not value
        ]
        if missing:
            raise OCRError(
                "DOCAI_CONFIG_MISSING",
                f"Document AI 설정이 없습니다: {', '.join(missing)}",
            )

        self.timeout = timeout
        self._client = http_client

    @property
    def process_url(self) -> str:
        return PROCESS_URL_TEMPLATE.format(
            location=self.location,
            project_id=self.project_id,
            processor_id=self.processor_id,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """httpx 클라이언트 (lazy init)."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """httpx 클라이언트와 토큰 발급자 클라이언트 정리."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self.credentials.aclose()

    async def extract_text(
        self,
        file_bytes: bytes,
        mime_type: str = "application/pdf",
    ) -> OCRResult:
        """PDF → 전체 문서 텍스트."""
        token = await self.credentials.get_token()
        body = {
            "rawDocument": {
                "content": base64.b64encode(file_bytes).decode("ascii"),
                "mimeType": mime_type,
            }
        }

        try:
            response = await self._get_client().post(
                self.process_url,
                json=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Document AI request failed: {e}", exc_info=True)
            raise OCRError(
                "DOCAI_REQUEST_FAILED",
                f"DocAI request failed: {e}",
                processor=self.processor_id,
            ) from e

        if response.status_code // 100 != 2:
            logger.error(
                f"Document AI error {response.status_code}: {response.text[:500]}"
            )
            raise OCRError(
                "DOCAI_ERROR",
                f"DocAI error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        payload: dict[str, Any] = response.json()
        document = payload.get("document") or {}
        text = document.get("text") or ""
        pages = document.get("pages")

        return OCRResult(
            text=text,
            provider=self.name,
            processor=self.processor_id,
            page_count=len(pages) if isinstance(pages, list) else None,
            processed_at=datetime.now(UTC).isoformat(),
        )
