"""
Export Service: 최신 Draft → 다운로드 파일.

- 항상 (version, seq) 최대 Draft 사용
- format: txt (기본) | docx
- 그 외 format은 txt로 렌더링하고 UNSUPPORTED_FORMAT 경고만 남김 (요청은 실패하지 않음)
"""

import logging
from dataclasses import dataclass

from src.core.logging import emit_warning
from src.core.records import RecordStore
from src.domain.constants import EXPORT_FILENAME_PATTERN, get_mime_type
from src.domain.errors import ErrorCodes, NotFoundError
from src.domain.schemas import ExportFormat, RunLog
from src.render.text import render_txt
from src.render.word import render_docx

logger = logging.getLogger(__name__)

RENDERERS = {
    ExportFormat.TXT: render_txt,
    ExportFormat.DOCX: render_docx,
}


@dataclass
class ExportedFile:
    """내보내기 결과."""
    content: bytes
    filename: str
    media_type: str
    version: int


def parse_export_format(
    value: str | None,
    default: str = ExportFormat.TXT.value,
    run_log: RunLog | None = None,
) -> ExportFormat:
    """요청 format → ExportFormat. 모르는 값은 TXT."""
    raw = (value or default or "").strip().lower()
    try:
        return ExportFormat(raw)
    except ValueError:
        logger.warning(f"Unsupported export format {raw!r}, rendering as txt")
        emit_warning(
            run_log,
            ErrorCodes.UNSUPPORTED_FORMAT,
            f"Unsupported export format: {raw}, rendered as txt",
            {"requested": raw, "supported": [f.value for f in ExportFormat]},
        )
        return ExportFormat.TXT


class ExportService:
    """초안 내보내기."""

    def __init__(self, config: dict, records: RecordStore):
        self.config = config
        self.records = records
        self.default_format = config.get("export", {}).get("default_format", ExportFormat.TXT.value)

    def export(
        self,
        matter_id: str,
        fmt: str | None = None,
        run_log: RunLog | None = None,
    ) -> ExportedFile:
        """
        Raises:
            NotFoundError: DRAFT_NOT_FOUND
        """
        export_format = parse_export_format(fmt, self.default_format, run_log)

        draft = self.records.get_latest_draft(matter_id)
        if draft is None:
            raise NotFoundError(
                ErrorCodes.DRAFT_NOT_FOUND,
                "No draft found for matter",
                matter_id=matter_id,
            )

        content = RENDERERS[export_format](draft)
        filename = EXPORT_FILENAME_PATTERN.format(matter_id=matter_id, ext=export_format.value)
        logger.info(
            f"Exported draft {draft.id} (version {draft.version}) as {export_format.value}"
        )
        return ExportedFile(
            content=content,
            filename=filename,
            media_type=get_mime_type(filename),
            version=draft.version,
        )
