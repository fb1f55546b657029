"""
FastAPI Routes.

API 라우트 (JSON, export만 파일 바이트). 모두 /api prefix.
"""

from . import drafts, export, extraction, ingest, ocr, upload

__all__ = ["upload", "ingest", "extraction", "drafts", "export", "ocr"]
