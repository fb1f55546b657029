"""
test_export.py - Export Service 테스트
"""

import pytest

from src.app.services.export import ExportService, parse_export_format
from src.core.logging import create_run_log
from src.domain.errors import ErrorCodes, NotFoundError
from src.domain.schemas import Argument, DraftRecord, ExportFormat


def insert_draft(records, matter_id: str, version: int, outline: str) -> DraftRecord:
    with records.transaction() as txn:
        return txn.insert_draft(
            DraftRecord(
                matter_id=matter_id,
                outline=outline,
                arguments=[Argument(target="35 USC 103", text="Not obvious.")],
                version=version,
            )
        )


class TestParseExportFormat:
    def test_default_txt(self):
        assert parse_export_format(None) is ExportFormat.TXT

    def test_case_insensitive(self):
        assert parse_export_format("DOCX") is ExportFormat.DOCX

    def test_unknown_falls_back_to_txt(self):
        run_log = create_run_log("export_draft")

        assert parse_export_format("pdf", run_log=run_log) is ExportFormat.TXT

        assert [w.code for w in run_log.warnings] == [ErrorCodes.UNSUPPORTED_FORMAT]
        assert run_log.warnings[0].detail["requested"] == "pdf"

    def test_unknown_without_run_log(self):
        assert parse_export_format("pdf") is ExportFormat.TXT


class TestExportService:
    def test_txt_uses_latest_version(self, test_config, records):
        insert_draft(records, "MAT-1", 1, "old outline")
        insert_draft(records, "MAT-1", 2, "new outline")

        exported = ExportService(test_config, records).export("MAT-1", "txt")

        text = exported.content.decode("utf-8")
        assert "new outline" in text
        assert "old outline" not in text
        assert exported.version == 2
        assert exported.filename == "OA_Response_MAT-1.txt"
        assert exported.media_type.startswith("text/plain")

    def test_docx(self, test_config, records):
        insert_draft(records, "MAT-1", 1, "outline")

        exported = ExportService(test_config, records).export("MAT-1", "docx")

        assert exported.filename == "OA_Response_MAT-1.docx"
        assert exported.content[:2] == b"PK"
        assert exported.media_type.endswith("wordprocessingml.document")

    def test_default_format_from_config(self, test_config, records):
        insert_draft(records, "MAT-1", 1, "outline")
        config = {**test_config, "export": {"default_format": "docx"}}

        exported = ExportService(config, records).export("MAT-1")

        assert exported.filename.endswith(".docx")

    def test_no_draft(self, test_config, records):
        with pytest.raises(NotFoundError) as exc_info:
            ExportService(test_config, records).export("MAT-1")

        assert exc_info.value.code == ErrorCodes.DRAFT_NOT_FOUND

    def test_unknown_format_renders_txt(self, test_config, records):
        insert_draft(records, "MAT-1", 1, "outline")

        exported = ExportService(test_config, records).export("MAT-1", "xlsx")

        assert exported.filename == "OA_Response_MAT-1.txt"
        assert exported.content.decode("utf-8").startswith("OFFICE ACTION RESPONSE")
