"""
외부 벤더 경계: OCR, LLM, 토큰 발급자 인터페이스와 공용 결과/에러 타입.

벤더 선택은 config(ai.llm.provider, ai.ocr.enabled)로 결정.
LLM 구현은 응답 원문만 돌려주고 JSON 해석과 스키마 정규화는 services에서 수행.
run log의 llm_calls / ocr_calls에는 LLMResponse.to_dict() / OCRResult.to_dict() 메타가 남음.
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


def compute_hash(content: str) -> str:
    """SHA-256 해시 계산."""
    return f"sha256:{hashlib.sha256(content.encode()).hexdigest()[:16]}"


# =============================================================================
# Result Data Classes
# =============================================================================

@dataclass
class OCRResult:
    """
    OCR 결과.

    text: 벤더가 보고한 전체 문서 텍스트 (없으면 "")
    """
    text: str = ""
    provider: str | None = None
    processor: str | None = None
    page_count: int | None = None
    processed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """run log용 메타. 본문 대신 글자 수만 기록."""
        result = {
            "provider": self.provider,
            "processor": self.processor,
            "page_count": self.page_count,
            "processed_at": self.processed_at,
            "chars": len(self.text),
        }
        return {k: v for k, v in result.items() if v is not None}


@dataclass
class LLMResponse:
    """
    LLM 호출 결과 (파싱 전 원문).

    - model_requested: config에 설정된 모델
    - model_used: 실제 호출된 모델 (fallback 시 다를 수 있음)
    """
    text: str
    provider: str
    model_requested: str | None = None
    model_used: str | None = None
    fallback_triggered: bool = False
    request_id: str | None = None
    prompt_hash: str | None = None
    model_params: dict[str, Any] = field(default_factory=dict)
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "provider": self.provider,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "fallback_triggered": self.fallback_triggered,
            "request_id": self.request_id,
            "prompt_hash": self.prompt_hash,
            "model_params": self.model_params,
            "completed_at": self.completed_at,
        }
        return {k: v for k, v in result.items() if v is not None}


# =============================================================================
# Provider Exceptions
# =============================================================================

class ProviderError(Exception):
    """Provider 관련 에러."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")


class OCRError(ProviderError):
    """OCR 관련 에러 (status_code, body는 context에)."""
    pass


class LLMError(ProviderError):
    """LLM 호출 관련 에러."""
    pass


class IdentityError(ProviderError):
    """외부 IdP 호출 에러."""
    pass


# =============================================================================
# Abstract Providers
# =============================================================================

class LLMProvider(ABC):
    """
    LLM Provider 추상 인터페이스.

    역할: system 지시 + user 입력 → JSON 텍스트 (판정 권한 없음)
    """

    name: str = "llm"
    model: str = ""

    @abstractmethod
    async def complete_json(self, system: str, user: str) -> LLMResponse:
        """
        엄격한 JSON 출력 요청.

        Args:
            system: 시스템 지시 (출력 스키마 포함)
            user: 사용자 입력 (문서 텍스트, 초안 파라미터 등)

        Returns:
            LLMResponse (text는 파싱 전 원문)

        Raises:
            LLMError
        """
        ...

    async def aclose(self) -> None:
        """보유한 네트워크 클라이언트 정리 (앱 종료 시)."""


class OCRProvider(ABC):
    """
    OCR Provider 추상 인터페이스.

    역할: PDF → 텍스트 추출
    """

    name: str = "ocr"

    @abstractmethod
    async def extract_text(
        self,
        file_bytes: bytes,
        mime_type: str = "application/pdf",
    ) -> OCRResult:
        """
        파일에서 텍스트 추출.

        Raises:
            OCRError: 벤더 non-2xx (status_code, body 포함)
        """
        ...

    async def aclose(self) -> None:
        """보유한 네트워크 클라이언트 정리 (앱 종료 시)."""


class CredentialProvider(ABC):
    """
    단기 bearer 토큰 제공자.

    만료 직전까지 재사용, 이후 갱신.
    """

    @abstractmethod
    async def get_token(self) -> str: ...

    async def aclose(self) -> None:
        """보유한 네트워크 클라이언트 정리 (앱 종료 시)."""
