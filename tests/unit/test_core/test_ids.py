"""
test_ids.py - ID 생성 테스트
"""

import re

from src.core.ids import generate_file_id, generate_record_id, generate_run_id, sanitize_name


class TestGenerateRecordId:
    def test_format(self):
        record_id = generate_record_id("MAT")

        assert re.fullmatch(r"MAT-\d{14}-[0-9a-f]{8}", record_id)

    def test_unique(self):
        ids = {generate_record_id("DRF") for _ in range(100)}

        assert len(ids) == 100

    def test_run_id_prefix(self):
        assert generate_run_id().startswith("RUN-")


class TestGenerateFileId:
    def test_keeps_lowercase_extension(self):
        assert generate_file_id("Office Action.PDF").endswith(".pdf")

    def test_no_extension(self):
        assert "." not in generate_file_id("upload")

    def test_sanitizes_extension(self):
        file_id = generate_file_id("x.p/df")

        assert "/" not in file_id


class TestSanitizeName:
    def test_replaces_unsafe_characters(self):
        assert sanitize_name("a b/c\\d") == "a_b_c_d"

    def test_keeps_safe_characters(self):
        assert sanitize_name("abc-DEF_1.2") == "abc-DEF_1.2"
