"""
Error definitions for the pipeline.

규칙:
- 조용한 실패 금지 → PipelineError 하위 클래스로 명시적 실패
- LLM 출력 파싱 실패 → MalformedOutputError (빈 성공 결과로 내리지 않음)
- 라우트는 status_code만 보고 응답 코드 결정
"""

from typing import Any


class PipelineError(Exception):
    """
    파이프라인 에러 기본 클래스.

    Usage:
        raise NotFoundError(ErrorCodes.MATTER_NOT_FOUND, "Not found or access denied",
                            matter_id=matter_id)
    """

    status_code = 500

    def __init__(self, code: str, message: str | None = None, **context: Any) -> None:
        self.code = code
        self.message = message or code
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"[{self.code}] {self.message} ({ctx_str})" if ctx_str else f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            "message": self.message,
            **{k: str(v) for k, v in self.context.items()},
        }


class ValidationError(PipelineError):
    """필수 입력 누락/형식 오류 → 400."""

    status_code = 400


class AuthError(PipelineError):
    """호출자 인증 실패 → 401."""

    status_code = 401


class NotFoundError(PipelineError):
    """레코드 없음 또는 접근 권한 없음 → 404 (둘은 구분하지 않음)."""

    status_code = 404


class UpstreamError(PipelineError):
    """OCR/LLM/IdP 등 외부 벤더 실패 → 500."""

    status_code = 500


class MalformedOutputError(UpstreamError):
    """LLM 응답이 JSON 객체로 파싱되지 않음 → 500."""


class StoreError(PipelineError):
    """Record/Blob Store 실패 → 500."""

    status_code = 500


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수. 응답 body의 code 필드와 run log에 그대로 기록."""

    # === Validation ===
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_FIELD = "INVALID_FIELD"

    # === Auth ===
    UNAUTHORIZED = "UNAUTHORIZED"

    # === Not found ===
    MATTER_NOT_FOUND = "MATTER_NOT_FOUND"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    EXTRACTION_NOT_FOUND = "EXTRACTION_NOT_FOUND"
    DRAFT_NOT_FOUND = "DRAFT_NOT_FOUND"
    BLOB_NOT_FOUND = "BLOB_NOT_FOUND"

    # === Upstream ===
    OCR_FAILED = "OCR_FAILED"
    LLM_FAILED = "LLM_FAILED"
    LLM_MALFORMED_OUTPUT = "LLM_MALFORMED_OUTPUT"
    IDENTITY_FAILED = "IDENTITY_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # === Store ===
    STORE_LOCK_TIMEOUT = "STORE_LOCK_TIMEOUT"
    STORE_CORRUPT = "STORE_CORRUPT"
    BLOB_WRITE_FAILED = "BLOB_WRITE_FAILED"
    BLOB_FETCH_FAILED = "BLOB_FETCH_FAILED"

    # === Warnings (run log only) ===
    INPUT_TRUNCATED = "INPUT_TRUNCATED"
    UNKNOWN_CLAIM_REFERENCE = "UNKNOWN_CLAIM_REFERENCE"
    ENTRY_DROPPED = "ENTRY_DROPPED"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
