"""
재시도 유틸리티.

LLM 일시 오류(429/5xx/연결)에만 사용. 기본값은 재시도 없음(max_retries=0).
OCR/토큰 교환은 재시도하지 않는다.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """지수 백오프 정책."""
    max_retries: int = 0
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "RetryPolicy":
        """ai.llm 섹션에서 정책 로드."""
        llm_config = config.get("ai", {}).get("llm", {})
        return cls(
            max_retries=int(llm_config.get("max_retries", 0)),
            initial_delay=float(llm_config.get("retry_initial_delay", 1.0)),
            max_delay=float(llm_config.get("retry_max_delay", 30.0)),
        )

    def delays(self) -> list[float]:
        """각 재시도 전 대기 시간 목록 (길이 = max_retries)."""
        result = []
        delay = self.initial_delay
        for _ in range(self.max_retries):
            result.append(delay)
            delay = min(delay * self.exponential_base, self.max_delay)
        return result


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: tuple[type[Exception], ...],
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    policy에 따라 func 재시도.

    retry_on에 속하지 않는 예외는 즉시 전파.
    마지막 시도의 예외는 그대로 전파.
    """
    delays = policy.delays()
    attempts = len(delays) + 1

    for attempt in range(attempts):
        try:
            result = await func()
        except retry_on as e:
            if attempt == attempts - 1:
                if attempts > 1:
                    logger.error(f"All {attempts} attempts failed. Last error: {e}")
                raise
            delay = delays[attempt]
            logger.warning(
                f"Attempt {attempt + 1}/{attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await sleep(delay)
            continue

        if attempt > 0:
            logger.info(f"Retry succeeded on attempt {attempt + 1}/{attempts}")
        return result

    raise RuntimeError("Unexpected retry loop exit")
