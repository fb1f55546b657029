"""
Google Gemini LLM Provider (JSON 응답 모드).

Fallback 예외 정책:
- FALLBACK_ERRORS: NotFound, ServiceUnavailable, ResourceExhausted → fallback 모델
- REJECT_IMMEDIATELY: InvalidArgument, PermissionDenied, Unauthenticated → 즉시 실패
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

from google.api_core.exceptions import (
    InvalidArgument,
    NotFound,
    PermissionDenied,
    ResourceExhausted,
    ServiceUnavailable,
    Unauthenticated,
)

from src.utils.retry import RetryPolicy, retry_async

from .base import LLMError, LLMProvider, LLMResponse, compute_hash

logger = logging.getLogger(__name__)

# =============================================================================
# Exception Mapping
# =============================================================================

FALLBACK_ERRORS: tuple[type[Exception], ...] = (
    NotFound,           # 모델명 오류/미지원
    ServiceUnavailable,  # 5xx
    ResourceExhausted,   # 429 쿼터/레이트리밋
)

REJECT_IMMEDIATELY: tuple[type[Exception], ...] = (
    InvalidArgument,    # 입력 오류
    PermissionDenied,   # 권한 오류
    Unauthenticated,    # API 키 오류
)


class GeminiProvider(LLMProvider):
    """
    Gemini Provider.

    Usage:
        provider = GeminiProvider(model="gemini-2.5-flash", fallback=None)
        response = await provider.complete_json(system_prompt, user_prompt)
    """

    name = "gemini"

    def __init__(
        self,
        model: str = "gemini-2.5-flash",
        fallback: str | None = None,
        api_key: str | None = None,
        max_tokens: int = 8192,
        temperature: float | None = None,
        max_retries: int = 0,
    ):
        """
        Args:
            model: 기본 모델 ID (config에서 주입)
            fallback: Fallback 모델 (None이면 fallback 없이 실패)
            api_key: API 키 (환경변수 GOOGLE_API_KEY 사용 가능)
            max_tokens: 최대 출력 토큰
            temperature: 샘플링 온도 (None이면 API 기본값)
            max_retries: 일시 오류 재시도 횟수 (0 = 단일 시도)

        Raises:
            LLMError: API 키가 없을 때 (fail-fast)
        """
        self.model = model
        self.fallback = fallback
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise LLMError(
                "GOOGLE_API_KEY_MISSING",
                "Gemini API 키가 없습니다. GOOGLE_API_KEY 환경변수를 설정하세요.",
            )

        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self._client: Any = None

    def _get_client(self) -> Any:
        """Gemini 모듈 (lazy configure)."""
        if self._client is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._client = genai
        return self._client

    def _collect_model_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "max_output_tokens": self.max_tokens,
            "response_mime_type": "application/json",
        }
        if self.temperature is not None:
            params["temperature"] = self.temperature
        return params

    async def complete_json(self, system: str, user: str) -> LLMResponse:
        """
        JSON 출력 요청.

        Fallback 정책:
        - FALLBACK_ERRORS → fallback 모델로 재시도
        - REJECT_IMMEDIATELY → 즉시 에러
        """
        prompt_hash = compute_hash(f"{system}\n\n{user}")

        try:
            text = await self._call_with_retry(self.model, system, user)
            return self._build_response(text, self.model, prompt_hash, fallback_triggered=False)

        except FALLBACK_ERRORS as e:
            if self.fallback is None:
                logger.error(f"Gemini model {self.model} failed: {e}")
                raise LLMError(
                    "NO_FALLBACK",
                    f"AI generation failed: {e}",
                    model=self.model,
                ) from e

            logger.warning(
                f"Primary model ({self.model}) failed with fallback error: {e}. "
                f"Trying fallback model: {self.fallback}"
            )
            try:
                text = await self._call_with_retry(self.fallback, system, user)
                logger.info("Fallback model succeeded")
                return self._build_response(
                    text, self.fallback, prompt_hash, fallback_triggered=True
                )
            except Exception as fallback_error:
                logger.error(f"Fallback model also failed: {fallback_error}")
                raise LLMError(
                    "FALLBACK_FAILED",
                    f"AI generation failed on primary and fallback models: {fallback_error}",
                    primary_model=self.model,
                    fallback_model=self.fallback,
                ) from fallback_error

        except REJECT_IMMEDIATELY as e:
            logger.error(f"Gemini authentication or input error: {e}", exc_info=True)
            raise LLMError(
                "AUTH_OR_INPUT_ERROR",
                f"AI generation rejected: {e}",
                model=self.model,
            ) from e

        except LLMError:
            raise

        except Exception as e:
            logger.error(f"Gemini call failed with unexpected error: {e}", exc_info=True)
            raise LLMError(
                "LLM_FAILED",
                f"AI generation failed: {e}",
                model=self.model,
            ) from e

    async def _call_with_retry(self, model: str, system: str, user: str) -> str:
        return await retry_async(
            lambda: self._call_api(model, system, user),
            RetryPolicy(max_retries=self.max_retries),
            (ServiceUnavailable, ResourceExhausted),
        )

    async def _call_api(self, model: str, system: str, user: str) -> str:
        """실제 Gemini API 호출."""
        genai = self._get_client()
        model_instance = genai.GenerativeModel(
            model,
            system_instruction=system,
            generation_config=self._collect_model_params(),
        )
        response = await model_instance.generate_content_async(user)
        return response.text or ""

    def _build_response(
        self,
        text: str,
        model_used: str,
        prompt_hash: str,
        fallback_triggered: bool,
    ) -> LLMResponse:
        return LLMResponse(
            text=text,
            provider=self.name,
            model_requested=self.model,
            model_used=model_used,
            fallback_triggered=fallback_triggered,
            prompt_hash=prompt_hash,
            model_params=self._collect_model_params(),
            completed_at=datetime.now(UTC).isoformat(),
        )
