"""
Pipeline Service: ingest / cleanup-ocr 오케스트레이션.

ingest 순서:
    Blob download → OCR → Extraction → (트랜잭션 1회) Matter + Document + Extraction insert

규칙:
- 외부 호출(OCR/LLM)이 모두 성공한 뒤에만 저장 → 부분 commit 없음
- Matter는 status=parsed로 생성 (created → parsed 단조 증가)
- 저장 텍스트는 DOCUMENT_TEXT_LIMIT로 자르고 text_truncated 기록
"""

import base64
import logging
from typing import Any

from src.app.services.extract import ExtractionService, truncate_text
from src.app.services.ocr import OCRService
from src.core.blobs import BlobStore
from src.core.logging import emit_warning
from src.core.records import RecordStore
from src.domain.constants import DOCUMENT_TEXT_LIMIT, get_mime_type
from src.domain.errors import (
    ErrorCodes,
    NotFoundError,
    StoreError,
    UpstreamError,
    ValidationError,
)
from src.domain.schemas import (
    Document,
    DocumentType,
    ExtractionRecord,
    Jurisdiction,
    Matter,
    MatterStatus,
    RunLog,
)

logger = logging.getLogger(__name__)

DEFAULT_MATTER_TITLE = "Untitled matter"


def document_mime_type(path: str) -> str:
    """Blob 경로 → OCR mime type (확장자 불명이면 PDF로 간주)."""
    mime = get_mime_type(path)
    return "application/pdf" if mime == "application/octet-stream" else mime


def parse_jurisdiction(value: str | None) -> Jurisdiction:
    """
    요청 jurisdiction → enum (없으면 USPTO).

    Raises:
        ValidationError: INVALID_FIELD
    """
    if not value:
        return Jurisdiction.USPTO
    try:
        return Jurisdiction(value.strip().upper())
    except ValueError as e:
        raise ValidationError(
            ErrorCodes.INVALID_FIELD,
            f"Unsupported jurisdiction: {value}",
            field="jurisdiction",
        ) from e


class PipelineService:
    """
    문서 처리 파이프라인.

    ocr가 None이면 OCR 미사용 모드 (PDF base64를 LLM에 직접 전달).
    """

    def __init__(
        self,
        config: dict,
        records: RecordStore,
        blobs: BlobStore,
        extraction: ExtractionService,
        ocr: OCRService | None = None,
    ):
        self.config = config
        self.records = records
        self.blobs = blobs
        self.extraction = extraction
        self.ocr = ocr
        self.text_limit = int(
            config.get("extraction", {}).get("document_text_limit", DOCUMENT_TEXT_LIMIT)
        )

    def _fetch_pdf(self, file_id: str, user_id: str | None = None) -> bytes:
        """
        Blob 조회. 없거나 쓸 수 없는 file_id도 하류 실패(500)로 올림.

        user_id가 주어지고 업로더가 기록되어 있으면 일치해야 함.
        불일치는 없는 blob과 같은 응답 (존재 여부 노출 안 함).

        Raises:
            StoreError: BLOB_FETCH_FAILED
        """
        try:
            data = self.blobs.download(file_id)
        except (NotFoundError, ValidationError) as e:
            raise StoreError(
                ErrorCodes.BLOB_FETCH_FAILED,
                e.message,
                file_id=file_id,
                blob_error=e.code,
            ) from e

        owner_id = self.blobs.owner_of(file_id)
        if user_id is not None and owner_id is not None and owner_id != user_id:
            logger.warning(f"Blob {file_id} requested by non-uploader {user_id}")
            raise StoreError(
                ErrorCodes.BLOB_FETCH_FAILED,
                "File fetch failed: object not found",
                file_id=file_id,
                blob_error=ErrorCodes.BLOB_NOT_FOUND,
            )
        return data

    def _stored_text(self, text: str, run_log: RunLog | None) -> tuple[str, bool]:
        stored, truncated = truncate_text(text, self.text_limit)
        if truncated:
            emit_warning(
                run_log,
                ErrorCodes.INPUT_TRUNCATED,
                f"Stored document text truncated to {self.text_limit} characters",
                {"original_length": len(text), "limit": self.text_limit},
            )
        return stored, truncated

    async def _analyze(
        self,
        pdf_bytes: bytes,
        mime_type: str,
        run_log: RunLog | None,
    ) -> tuple[str, ExtractionRecord]:
        """PDF → (문서 텍스트, ExtractionRecord). 저장하지 않음."""
        if self.ocr is not None:
            text = await self.ocr.extract_text(pdf_bytes, mime_type, run_log)
            record = await self.extraction.extract_from_text(text, run_log)
        else:
            text = base64.b64encode(pdf_bytes).decode("ascii")
            record = await self.extraction.extract_from_pdf(pdf_bytes, run_log)
        return text, record

    async def ingest(
        self,
        file_id: str,
        user_id: str,
        jurisdiction: str | None = None,
        title: str | None = None,
        run_log: RunLog | None = None,
    ) -> Matter:
        """
        업로드된 PDF → Matter(parsed) + Document + Extraction.

        Raises:
            ValidationError: file_id 누락 / 잘못된 jurisdiction
            StoreError: BLOB_FETCH_FAILED (blob 없음 / 잘못된 file_id / 다른 업로더)
            UpstreamError: OCR/LLM 실패 (아무것도 저장되지 않음)
        """
        if not file_id:
            raise ValidationError(
                ErrorCodes.MISSING_REQUIRED_FIELD,
                "file_id required",
                field="file_id",
            )
        resolved_jurisdiction = parse_jurisdiction(jurisdiction)

        pdf_bytes = self._fetch_pdf(file_id, user_id)
        text, record = await self._analyze(pdf_bytes, document_mime_type(file_id), run_log)
        stored_text, text_truncated = self._stored_text(text, run_log)

        with self.records.transaction() as txn:
            matter = txn.insert_matter(
                Matter(
                    title=title or DEFAULT_MATTER_TITLE,
                    jurisdiction=resolved_jurisdiction,
                    status=MatterStatus.PARSED,
                    owner_id=user_id,
                )
            )
            txn.insert_document(
                Document(
                    matter_id=matter.id,
                    type=DocumentType.OFFICE_ACTION,
                    path=file_id,
                    text=stored_text,
                    text_truncated=text_truncated,
                )
            )
            record.matter_id = matter.id
            txn.insert_extraction(record)

        logger.info(
            f"Ingest completed: matter={matter.id}, rejections={len(record.rejections)}, "
            f"claims={len(record.claims)}, truncated={record.truncated}"
        )
        return matter

    async def reparse(
        self,
        matter: Matter,
        reextract: bool = False,
        run_log: RunLog | None = None,
    ) -> dict[str, Any]:
        """
        Office Action 문서 OCR 재실행 → Document.text 갱신.

        reextract=True면 새 Extraction도 insert (seq 최대 → current).

        Raises:
            NotFoundError: DOCUMENT_NOT_FOUND
            StoreError: BLOB_FETCH_FAILED
            UpstreamError: OCR 비활성화 또는 OCR/LLM 실패
        """
        if self.ocr is None:
            raise UpstreamError(
                ErrorCodes.OCR_FAILED,
                "OCR is disabled (ai.ocr.enabled: false)",
                matter_id=matter.id,
            )

        document = self.records.get_document(matter.id, DocumentType.OFFICE_ACTION)
        if document is None:
            raise NotFoundError(
                ErrorCodes.DOCUMENT_NOT_FOUND,
                "Office action document not found",
                matter_id=matter.id,
            )

        pdf_bytes = self._fetch_pdf(document.path)
        text = await self.ocr.extract_text(
            pdf_bytes, document_mime_type(document.path), run_log
        )

        record = None
        if reextract:
            record = await self.extraction.extract_from_text(text, run_log)
            record.matter_id = matter.id

        stored_text, text_truncated = self._stored_text(text, run_log)
        with self.records.transaction() as txn:
            txn.update_document_text(document.id, stored_text, text_truncated)
            if record is not None:
                txn.insert_extraction(record)
                txn.advance_matter_status(matter.id, MatterStatus.PARSED)

        logger.info(
            f"Reparse completed: matter={matter.id}, chars={len(text)}, reextract={reextract}"
        )
        return {"status": "reparsed"}
