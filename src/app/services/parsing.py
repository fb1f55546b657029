"""
LLM 응답 파싱: 원문 텍스트 → JSON 객체.

파싱 실패를 빈 객체로 내리지 않는다.
결과는 Parsed(data) | MalformedOutput(raw_text, reason) 중 하나.
"""

import json
from dataclasses import dataclass
from typing import Any

from src.domain.errors import ErrorCodes, MalformedOutputError


@dataclass(frozen=True)
class Parsed:
    """JSON 객체로 파싱 성공."""
    data: dict[str, Any]


@dataclass(frozen=True)
class MalformedOutput:
    """JSON 객체가 아님. raw_text는 디버깅용으로 보존."""
    raw_text: str
    reason: str


ParseResult = Parsed | MalformedOutput


def _candidate_json(text: str) -> str:
    """응답에서 JSON 후보 문자열 추출."""
    # ```json ... ``` 블록
    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    # 순수 JSON 또는 앞뒤 잡음
    if "{" in text:
        start = text.find("{")
        end = text.rfind("}") + 1
        return text[start:end]
    raise ValueError("No JSON object found in response")


def parse_json_object(text: str) -> ParseResult:
    """
    LLM 응답을 JSON 객체로 파싱.

    - 빈 응답, JSON 아님, 최상위가 객체가 아님 → MalformedOutput
    """
    if not text or not text.strip():
        return MalformedOutput(raw_text=text or "", reason="Empty response")

    try:
        data = json.loads(_candidate_json(text))
    except (json.JSONDecodeError, ValueError) as e:
        return MalformedOutput(raw_text=text, reason=f"Failed to parse response: {e}")

    if not isinstance(data, dict):
        return MalformedOutput(
            raw_text=text,
            reason=f"Expected JSON object, got {type(data).__name__}",
        )
    return Parsed(data=data)


def require_parsed(result: ParseResult, stage: str) -> dict[str, Any]:
    """
    Parsed면 data 반환, MalformedOutput이면 MalformedOutputError.

    Args:
        result: parse_json_object 결과
        stage: extraction | draft (에러 컨텍스트)
    """
    if isinstance(result, MalformedOutput):
        raise MalformedOutputError(
            ErrorCodes.LLM_MALFORMED_OUTPUT,
            f"AI returned malformed output during {stage}: {result.reason}",
            stage=stage,
            raw_preview=result.raw_text[:200],
        )
    return result.data
