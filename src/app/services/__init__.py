"""
Application Services.

역할:
- ocr: Document AI OCR 래핑
- extract: LLM 구조화 추출 + 정규화
- draft: 의견서 초안 생성 + 버전 관리
- export: txt/docx 내보내기
- pipeline: ingest / cleanup-ocr 오케스트레이션
"""

from .draft import DraftService
from .export import ExportService
from .extract import ExtractionService
from .ocr import OCRService
from .parsing import MalformedOutput, Parsed, parse_json_object
from .pipeline import PipelineService

__all__ = [
    "OCRService",
    "ExtractionService",
    "DraftService",
    "ExportService",
    "PipelineService",
    "Parsed",
    "MalformedOutput",
    "parse_json_object",
]
