"""
Plain text 렌더러: DraftRecord → UTF-8 텍스트.

고정 섹션 헤더 순서:
    OFFICE ACTION RESPONSE / OUTLINE / ARGUMENTS / PROPOSED AMENDMENTS / CITATIONS
항목이 비어 있어도 헤더는 항상 출력.
"""

from src.domain.constants import (
    EXPORT_SECTION_AMENDMENTS,
    EXPORT_SECTION_ARGUMENTS,
    EXPORT_SECTION_CITATIONS,
    EXPORT_SECTION_OUTLINE,
    EXPORT_TITLE,
)
from src.domain.schemas import Amendment, Argument, Citation, DraftRecord


def format_argument(argument: Argument) -> str:
    return f"- {argument.target}: {argument.text}"


def format_amendment(amendment: Amendment) -> str:
    return f"Claim {amendment.claim}: {amendment.proposed} (Reason: {amendment.rationale})"


def citation_label(citation: Citation) -> str:
    if citation.link:
        return f"{citation.source} ({citation.link})"
    return citation.source


def format_citation(citation: Citation) -> str:
    return f"- {citation_label(citation)}"


def render_text(draft: DraftRecord) -> str:
    """초안 → 텍스트 (결정적, 줄 단위)."""
    lines = [EXPORT_TITLE, ""]

    lines.append(EXPORT_SECTION_OUTLINE)
    lines.append(draft.outline)
    lines.append("")

    lines.append(EXPORT_SECTION_ARGUMENTS)
    lines.extend(format_argument(a) for a in draft.arguments)
    lines.append("")

    lines.append(EXPORT_SECTION_AMENDMENTS)
    lines.extend(format_amendment(a) for a in draft.amendments)
    lines.append("")

    lines.append(EXPORT_SECTION_CITATIONS)
    lines.extend(format_citation(c) for c in draft.citations)

    return "\n".join(lines) + "\n"


def render_txt(draft: DraftRecord) -> bytes:
    return render_text(draft).encode("utf-8")
