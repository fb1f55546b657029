"""
Extraction Service: Office Action 텍스트 → ExtractionRecord.

규칙:
- LLM은 구조화 제안만, 정규화/기본값 처리는 여기서
- 보이지 않는 사실을 만들지 않도록 지시 (모르면 "" / [])
- 입력은 고정 길이로 자르되 truncated 플래그로 알림
- 파싱 실패 → MalformedOutputError (빈 성공 결과 금지)
"""

import base64
import logging
from typing import Any

from src.app.providers.base import LLMError, LLMProvider
from src.app.services.parsing import parse_json_object, require_parsed
from src.core.logging import emit_warning, record_llm_call
from src.domain.constants import MAX_EXTRACTION_BASE64_CHARS, MAX_EXTRACTION_INPUT_CHARS
from src.domain.errors import ErrorCodes, UpstreamError
from src.domain.schemas import (
    Claim,
    ExtractionMetadata,
    ExtractionRecord,
    Formality,
    PriorArt,
    Rejection,
    RunLog,
)

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """You extract structured data from a patent office action.
Return strict JSON with exactly this shape:
{
  "metadata": {"application_number": "", "examiner": "", "art_unit": "", "mail_date": ""},
  "rejections": [{"code": "", "basis": "", "claims": [""], "summary": ""}],
  "formalities": [{"topic": "", "detail": ""}],
  "claims": [{"number": 1, "text": ""}],
  "prior_art": [{"kind": "", "number": "", "title": ""}]
}
Rules:
- Only report facts that appear in the document. Do not invent data.
- Use an empty string for unknown text fields and an empty array for lists with no entries.
- rejections[].code is the statutory basis as written (e.g. "35 USC 103").
- rejections[].claims lists the rejected claim numbers as strings.
- Output JSON only."""


def truncate_text(text: str, limit: int) -> tuple[str, bool]:
    """limit 글자로 자르기. (잘린 텍스트, 잘렸는지)"""
    if limit <= 0 or len(text) <= limit:
        return text, False
    return text[:limit], True


# =============================================================================
# Normalization
# =============================================================================

def _as_str(value: Any) -> str:
    """스칼라 → 문자열, None/구조체 → ""."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value).strip()


def _as_claim_refs(value: Any) -> list[str]:
    """rejection.claims: 리스트/숫자/"1, 2, 3" 문자열 허용 → 문자열 리스트."""
    if value is None:
        return []
    if isinstance(value, list):
        items = value
    elif isinstance(value, str):
        items = value.split(",")
    else:
        items = [value]
    refs = [_as_str(item) for item in items]
    return [ref for ref in refs if ref]


def _as_claim_number(entry: dict[str, Any]) -> int | None:
    """claims[].number (또는 no) → int. 변환 불가 시 None."""
    raw = entry.get("number", entry.get("no"))
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        digits = raw.strip().lstrip("#").strip()
        if digits.isdigit():
            return int(digits)
    return None


def _object_entries(
    data: dict[str, Any],
    key: str,
    run_log: RunLog | None,
) -> list[dict[str, Any]]:
    """data[key]에서 객체 항목만 추림. 나머지는 경고 후 버림."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        emit_warning(
            run_log,
            ErrorCodes.ENTRY_DROPPED,
            f"Field '{key}' is not a list; ignored",
            {"field": key, "type": type(value).__name__},
        )
        return []

    entries = []
    for index, item in enumerate(value):
        if isinstance(item, dict):
            entries.append(item)
        else:
            emit_warning(
                run_log,
                ErrorCodes.ENTRY_DROPPED,
                f"Non-object entry in '{key}' dropped",
                {"field": key, "index": index},
            )
    return entries


def normalize_extraction(
    data: dict[str, Any],
    run_log: RunLog | None = None,
) -> ExtractionRecord:
    """
    LLM JSON → ExtractionRecord.

    - metadata 값은 문자열로
    - rejection.claims는 문자열 리스트로
    - claim.number는 int로 (number 또는 no 키), 변환 불가 항목은 경고 후 버림
    - 객체가 아닌 항목은 경고 후 버림
    """
    metadata_raw = data.get("metadata")
    if not isinstance(metadata_raw, dict):
        metadata_raw = {}
    metadata = ExtractionMetadata(
        application_number=_as_str(metadata_raw.get("application_number")),
        examiner=_as_str(metadata_raw.get("examiner")),
        art_unit=_as_str(metadata_raw.get("art_unit")),
        mail_date=_as_str(metadata_raw.get("mail_date")),
    )

    rejections = [
        Rejection(
            code=_as_str(item.get("code")),
            basis=_as_str(item.get("basis")),
            claims=_as_claim_refs(item.get("claims")),
            summary=_as_str(item.get("summary")),
        )
        for item in _object_entries(data, "rejections", run_log)
    ]

    formalities = [
        Formality(topic=_as_str(item.get("topic")), detail=_as_str(item.get("detail")))
        for item in _object_entries(data, "formalities", run_log)
    ]

    claims: list[Claim] = []
    for item in _object_entries(data, "claims", run_log):
        number = _as_claim_number(item)
        if number is None:
            emit_warning(
                run_log,
                ErrorCodes.ENTRY_DROPPED,
                "Claim entry without a numeric claim number dropped",
                {"number": _as_str(item.get("number", item.get("no")))},
            )
            continue
        claims.append(Claim(number=number, text=_as_str(item.get("text"))))

    prior_art = [
        PriorArt(
            kind=_as_str(item.get("kind")),
            number=_as_str(item.get("number")),
            title=_as_str(item.get("title")),
        )
        for item in _object_entries(data, "prior_art", run_log)
    ]

    return ExtractionRecord(
        metadata=metadata,
        rejections=rejections,
        formalities=formalities,
        claims=claims,
        prior_art=prior_art,
    )


# =============================================================================
# Service
# =============================================================================

class ExtractionService:
    """
    추출 서비스.

    OCR 텍스트(기본) 또는 PDF base64(OCR 미사용 시)를 LLM에 보내
    정규화된 ExtractionRecord 반환. 저장은 pipeline 계층에서.
    """

    def __init__(self, config: dict, provider: LLMProvider):
        """
        Args:
            config: 설정 (extraction 섹션 사용)
            provider: LLM Provider
        """
        self.config = config
        self.provider = provider
        extraction_config = config.get("extraction", {})
        self.max_input_chars = int(
            extraction_config.get("max_input_chars", MAX_EXTRACTION_INPUT_CHARS)
        )
        self.max_base64_chars = int(
            extraction_config.get("max_base64_chars", MAX_EXTRACTION_BASE64_CHARS)
        )

    async def extract_from_text(
        self,
        document_text: str,
        run_log: RunLog | None = None,
    ) -> ExtractionRecord:
        """OCR 텍스트 → ExtractionRecord."""
        text, truncated = truncate_text(document_text, self.max_input_chars)
        if truncated:
            emit_warning(
                run_log,
                ErrorCodes.INPUT_TRUNCATED,
                f"Extraction input truncated to {self.max_input_chars} characters",
                {"original_length": len(document_text), "limit": self.max_input_chars},
            )
        user = f"Office action text:\n\n{text}"
        return await self._extract(user, truncated, run_log)

    async def extract_from_pdf(
        self,
        pdf_bytes: bytes,
        run_log: RunLog | None = None,
    ) -> ExtractionRecord:
        """OCR 미사용: PDF base64를 그대로 LLM에 전달."""
        encoded = base64.b64encode(pdf_bytes).decode("ascii")
        content, truncated = truncate_text(encoded, self.max_base64_chars)
        if truncated:
            emit_warning(
                run_log,
                ErrorCodes.INPUT_TRUNCATED,
                f"Base64 document truncated to {self.max_base64_chars} characters",
                {"original_length": len(encoded), "limit": self.max_base64_chars},
            )
        user = f"Office action PDF (base64, may be truncated):\n\n{content}"
        return await self._extract(user, truncated, run_log)

    async def _extract(
        self,
        user: str,
        truncated: bool,
        run_log: RunLog | None,
    ) -> ExtractionRecord:
        try:
            response = await self.provider.complete_json(EXTRACTION_SYSTEM_PROMPT, user)
        except LLMError as e:
            raise UpstreamError(
                ErrorCodes.LLM_FAILED,
                e.message,
                vendor_code=e.code,
                stage="extraction",
            ) from e

        logger.info(
            f"Extraction LLM call completed: provider={response.provider}, "
            f"model_used={response.model_used}, fallback={response.fallback_triggered}"
        )
        record_llm_call(run_log, "extraction", response.to_dict())

        data = require_parsed(parse_json_object(response.text), "extraction")
        record = normalize_extraction(data, run_log)
        record.truncated = truncated

        unknown = record.unknown_claim_references()
        if unknown:
            emit_warning(
                run_log,
                ErrorCodes.UNKNOWN_CLAIM_REFERENCE,
                "Rejections reference claims not present in the claim list",
                {"claims": unknown},
            )
        return record
