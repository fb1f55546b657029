"""
ID 생성: record id, run_id

규칙:
- id는 insert 시 1회만 발급, 수정 금지
- 포맷: {PREFIX}-{timestamp}-{uuid[:8]}
"""

import re
import uuid
from datetime import UTC, datetime

from src.domain.constants import RUN_ID_PREFIX

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]")


def generate_record_id(prefix: str) -> str:
    """
    레코드 ID 생성.

    고유성 보장: UUID v4
    포맷: {prefix}-{timestamp}-{uuid[:8]}

    Args:
        prefix: MAT, DOC, EXT, DRF 등

    Returns:
        id 문자열
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"{prefix}-{timestamp}-{unique}"


def generate_run_id() -> str:
    """Run ID 생성 (RUN-{timestamp}-{uuid[:8]})."""
    return generate_record_id(RUN_ID_PREFIX)


def generate_file_id(filename: str) -> str:
    """
    Blob Store용 file_id 생성.

    포맷: {uuid}.{ext} (원본 확장자만 유지, 나머지 파일명은 버림)

    Args:
        filename: 업로드된 원본 파일명

    Returns:
        file_id 문자열
    """
    ext = ""
    if "." in filename:
        ext = sanitize_name(filename.rsplit(".", 1)[1].lower())[:10]
    unique = uuid.uuid4().hex
    return f"{unique}.{ext}" if ext else unique


def sanitize_name(value: str) -> str:
    """
    파일명/ID에 사용할 수 있도록 문자열 정리.

    - 허용: ASCII 알파벳, 숫자, '.', '_', '-'
    - 그 외 문자 → '_'
    """
    return _SAFE_NAME_RE.sub("_", value)
