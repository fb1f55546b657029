"""
Render layer: 초안 내보내기 파일 생성.

역할:
- DraftRecord → 최종 파일 바이트
- plain text (기본), python-docx (Word)
"""

from .text import render_text, render_txt
from .word import DocxRenderer, render_docx

__all__ = [
    "render_text",
    "render_txt",
    "render_docx",
    "DocxRenderer",
]
