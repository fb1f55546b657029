"""
Word (DOCX) 렌더러: python-docx 기반.

텍스트 렌더러와 같은 섹션/순서를 Heading + 단락으로 출력.
템플릿 없이 빈 문서에서 생성.
"""

import io
import logging

from docx import Document as DocxDocument

from src.domain.constants import (
    EXPORT_SECTION_AMENDMENTS,
    EXPORT_SECTION_ARGUMENTS,
    EXPORT_SECTION_CITATIONS,
    EXPORT_SECTION_OUTLINE,
    EXPORT_TITLE,
)
from src.domain.errors import ErrorCodes, UpstreamError
from src.domain.schemas import DraftRecord
from src.render.text import citation_label, format_amendment

logger = logging.getLogger(__name__)


class DocxRenderer:
    """
    Word 문서 렌더러.

    Usage:
        renderer = DocxRenderer()
        data = renderer.render(draft)
    """

    def __init__(self, list_style: str = "List Bullet"):
        """
        Args:
            list_style: 목록 항목 단락 스타일 (기본 템플릿에 있는 이름)
        """
        self.list_style = list_style

    def render(self, draft: DraftRecord) -> bytes:
        """
        초안 → DOCX 바이트.

        Raises:
            UpstreamError: INTERNAL_ERROR (렌더링 실패)
        """
        try:
            doc = DocxDocument()
            doc.add_heading(EXPORT_TITLE, level=0)

            doc.add_heading(EXPORT_SECTION_OUTLINE, level=1)
            for paragraph in draft.outline.split("\n\n") if draft.outline else []:
                doc.add_paragraph(paragraph)

            doc.add_heading(EXPORT_SECTION_ARGUMENTS, level=1)
            for argument in draft.arguments:
                p = doc.add_paragraph(style=self.list_style)
                p.add_run(f"{argument.target}: ").bold = True
                p.add_run(argument.text)

            doc.add_heading(EXPORT_SECTION_AMENDMENTS, level=1)
            for amendment in draft.amendments:
                doc.add_paragraph(format_amendment(amendment))

            doc.add_heading(EXPORT_SECTION_CITATIONS, level=1)
            for citation in draft.citations:
                doc.add_paragraph(citation_label(citation), style=self.list_style)

            buffer = io.BytesIO()
            doc.save(buffer)
            return buffer.getvalue()

        except Exception as e:
            logger.error(f"DOCX render failed for matter {draft.matter_id}: {e}", exc_info=True)
            raise UpstreamError(
                ErrorCodes.INTERNAL_ERROR,
                f"DOCX render failed: {e}",
                matter_id=draft.matter_id,
            ) from e


def render_docx(draft: DraftRecord) -> bytes:
    """편의 함수: 기본 설정으로 DOCX 렌더링."""
    return DocxRenderer().render(draft)
