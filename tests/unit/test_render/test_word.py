"""
test_word.py - DOCX 렌더러 테스트

생성된 바이트를 python-docx로 다시 열어 구조 확인.
"""

import io
from unittest.mock import patch

import pytest
from docx import Document as DocxDocument

from src.domain.errors import ErrorCodes, UpstreamError
from src.domain.schemas import Amendment, Argument, Citation, DraftRecord
from src.render.word import DocxRenderer, render_docx


@pytest.fixture
def draft() -> DraftRecord:
    return DraftRecord(
        matter_id="MAT-1",
        outline="First paragraph.\n\nSecond paragraph.",
        arguments=[Argument(target="35 USC 103", text="Doe does not teach X.")],
        amendments=[Amendment(claim="1", proposed="A widget with X", rationale="Clarify")],
        citations=[Citation(source="MPEP 2143", link="https://example.test/2143")],
    )


def paragraphs(data: bytes) -> list:
    return DocxDocument(io.BytesIO(data)).paragraphs


class TestDocxRenderer:
    def test_sections_in_order(self, draft):
        texts = [p.text for p in paragraphs(render_docx(draft))]

        headers = ["OFFICE ACTION RESPONSE", "OUTLINE", "ARGUMENTS",
                   "PROPOSED AMENDMENTS", "CITATIONS"]
        assert [t for t in texts if t in headers] == headers

    def test_content(self, draft):
        texts = [p.text for p in paragraphs(render_docx(draft))]

        assert "First paragraph." in texts
        assert "Second paragraph." in texts
        assert "35 USC 103: Doe does not teach X." in texts
        assert "Claim 1: A widget with X (Reason: Clarify)" in texts
        assert "MPEP 2143 (https://example.test/2143)" in texts

    def test_argument_target_bold(self, draft):
        argument = next(
            p for p in paragraphs(render_docx(draft)) if p.text.startswith("35 USC 103")
        )

        assert argument.runs[0].bold is True
        assert argument.runs[1].bold is not True

    def test_empty_draft(self):
        texts = [p.text for p in paragraphs(render_docx(DraftRecord(matter_id="MAT-1")))]

        assert "CITATIONS" in texts

    def test_render_failure(self, draft):
        renderer = DocxRenderer(list_style="No Such Style")

        with pytest.raises(UpstreamError) as exc_info:
            renderer.render(draft)

        assert exc_info.value.code == ErrorCodes.INTERNAL_ERROR

    def test_save_failure_wrapped(self, draft):
        with patch("src.render.word.DocxDocument", side_effect=OSError("disk")):
            with pytest.raises(UpstreamError):
                render_docx(draft)
