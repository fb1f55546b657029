"""
Domain Constants: 파이프라인 전역 상수.

입력 길이 제한, 파일명 정책, 경로 상수 등 시스템 전반에서 사용되는 값들.
config(default.yaml)에 값이 있으면 config가 우선.
"""

# =============================================================================
# Input Limits (LLM 컨텍스트 예산)
# =============================================================================
# OCR 텍스트 → LLM: 120,000자
# OCR 미사용 시 PDF base64 → LLM: 100,000자
# Document.text 저장: 50,000자

MAX_EXTRACTION_INPUT_CHARS = 120_000
MAX_EXTRACTION_BASE64_CHARS = 100_000
DOCUMENT_TEXT_LIMIT = 50_000

# =============================================================================
# Drafting Defaults
# =============================================================================

DEFAULT_DRAFT_STYLE = "concise"
DEFAULT_DRAFT_SECTIONS = ("cover", "summary", "amendments", "arguments", "conclusion")

# =============================================================================
# Export
# =============================================================================

EXPORT_TITLE = "OFFICE ACTION RESPONSE"
EXPORT_SECTION_OUTLINE = "OUTLINE"
EXPORT_SECTION_ARGUMENTS = "ARGUMENTS"
EXPORT_SECTION_AMENDMENTS = "PROPOSED AMENDMENTS"
EXPORT_SECTION_CITATIONS = "CITATIONS"

EXPORT_FILENAME_PATTERN = "OA_Response_{matter_id}.{ext}"

# =============================================================================
# Storage Layout (data_dir 기준)
# =============================================================================
# data/
# ├── records.json     # Record Store (전 테이블)
# ├── .lock/           # Record Store 디렉터리 락
# ├── blobs/           # Blob Store
# └── logs/            # run_{run_id}.json

RECORDS_FILENAME = "records.json"
BLOBS_DIR = "blobs"
LOGS_DIR = "logs"
LOCK_DIR = ".lock"

RECORD_TABLES = ("matters", "documents", "extractions", "drafts")

# =============================================================================
# ID Prefixes
# =============================================================================

MATTER_ID_PREFIX = "MAT"
DOCUMENT_ID_PREFIX = "DOC"
EXTRACTION_ID_PREFIX = "EXT"
DRAFT_ID_PREFIX = "DRF"
RUN_ID_PREFIX = "RUN"

# =============================================================================
# MIME Types
# =============================================================================

MIME_TYPES = {
    ".txt": "text/plain; charset=utf-8",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".pdf": "application/pdf",
    ".json": "application/json",
}


def get_mime_type(filename: str) -> str:
    """
    파일명에서 MIME 타입 추출.

    Args:
        filename: 파일명 (확장자 포함)

    Returns:
        MIME 타입 문자열 (알 수 없으면 octet-stream)
    """
    import os

    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "application/octet-stream")
