"""
Anthropic Messages API 기반 LLMProvider.

Messages API에는 JSON 모드가 없어 system 지시 끝에 JSON_ONLY_SUFFIX를 붙임.
응답 텍스트는 그대로 반환하고 JSON 해석은 services.parsing에서 처리.
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

import anthropic

from src.utils.retry import RetryPolicy, retry_async

from .base import LLMError, LLMProvider, LLMResponse, compute_hash

logger = logging.getLogger(__name__)

JSON_ONLY_SUFFIX = "\n\nRespond with a single JSON object only. No prose, no markdown."

RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.InternalServerError,
)

# 앞에서부터 첫 일치 (APITimeoutError는 APIConnectionError의 하위 클래스)
ERROR_CODES: tuple[tuple[tuple[type[Exception], ...], str], ...] = (
    (
        (
            anthropic.AuthenticationError,
            anthropic.PermissionDeniedError,
            anthropic.BadRequestError,
        ),
        "AUTH_OR_INPUT_ERROR",
    ),
    ((anthropic.RateLimitError,), "RATE_LIMITED"),
    ((anthropic.APIConnectionError,), "CONNECTION_FAILED"),
)


class ClaudeProvider(LLMProvider):
    """
    Claude API Provider.

    Usage:
        provider = ClaudeProvider(model="claude-opus-4-5-20251101")
        response = await provider.complete_json(system_prompt, user_prompt)
    """

    name = "anthropic"

    def __init__(
        self,
        model: str = "claude-opus-4-5-20251101",
        api_key: str | None = None,
        max_tokens: int = 8192,
        temperature: float | None = None,
        max_retries: int = 0,
    ):
        """
        Args:
            model: 모델 ID (config에서 주입)
            api_key: API 키 (환경변수 MY_ANTHROPIC_KEY 또는 ANTHROPIC_API_KEY 사용 가능)
            max_tokens: 최대 토큰 수
            temperature: 샘플링 온도 (None이면 API 기본값)
            max_retries: 일시 오류 재시도 횟수 (0 = 단일 시도)

        Raises:
            LLMError: API 키가 없을 때 (fail-fast)
        """
        self.model = model
        # API 키 결정: 인자 > MY_ANTHROPIC_KEY > ANTHROPIC_API_KEY
        self.api_key = (
            api_key
            or os.environ.get("MY_ANTHROPIC_KEY")
            or os.environ.get("ANTHROPIC_API_KEY")
        )
        if not self.api_key:
            raise LLMError(
                "ANTHROPIC_KEY_MISSING",
                "Anthropic API 키가 없습니다. "
                "MY_ANTHROPIC_KEY 또는 ANTHROPIC_API_KEY 환경변수를 설정하세요.",
            )

        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self._client: Any = None

    def _get_client(self) -> Any:
        """Anthropic 클라이언트 (lazy init)."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, max_retries=0)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    def _collect_model_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"max_tokens": self.max_tokens}
        if self.temperature is not None:
            params["temperature"] = self.temperature
        return params

    async def complete_json(self, system: str, user: str) -> LLMResponse:
        prompt_hash = compute_hash(f"{system}\n\n{user}")

        try:
            response = await self._call_api_with_retry(system, user)
        except Exception as e:
            logger.error(f"Claude call failed: {e}", exc_info=True)
            raise LLMError(
                self._error_code(e),
                f"AI generation failed: {e}",
                model=self.model,
            ) from e

        text = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        )

        return LLMResponse(
            text=text,
            provider=self.name,
            model_requested=self.model,
            model_used=getattr(response, "model", None) or self.model,
            request_id=getattr(response, "id", None),
            prompt_hash=prompt_hash,
            model_params=self._collect_model_params(),
            completed_at=datetime.now(UTC).isoformat(),
        )

    async def _call_api_with_retry(self, system: str, user: str) -> Any:
        """재시도 정책이 적용된 API 호출 (max_retries=0이면 단일 시도)."""

        async def _api_call() -> Any:
            client = self._get_client()
            api_kwargs: dict[str, Any] = {
                "model": self.model,
                "system": system + JSON_ONLY_SUFFIX,
                "messages": [{"role": "user", "content": user}],
                **self._collect_model_params(),
            }
            return await client.messages.create(**api_kwargs)

        return await retry_async(
            _api_call,
            RetryPolicy(max_retries=self.max_retries),
            RETRYABLE_EXCEPTIONS,
        )

    def _error_code(self, error: Exception) -> str:
        for error_types, code in ERROR_CODES:
            if isinstance(error, error_types):
                return code
        return "LLM_FAILED"
