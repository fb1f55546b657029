"""
Record Store: matters, documents, extractions, drafts.

외부 관계형 저장소를 read / insert / update-by-id 연산으로만 다룸.
파이프라인은 저장소의 락/정책을 가정하지 않음 (권한은 core/authz.py).

JsonRecordStore:
- 전 테이블을 records.json 하나에 저장 → 트랜잭션 = 원자적 쓰기 1회
- 트랜잭션 중 예외 발생 시 아무것도 commit되지 않음 (부분 commit 없음)
- seq: 저장소 전역 단조 증가 insert 카운터 (동률 해소 기준)
"""

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.ids import generate_record_id
from src.core.storage import atomic_write_json, load_json_file, store_lock
from src.domain.constants import (
    DOCUMENT_ID_PREFIX,
    DRAFT_ID_PREFIX,
    EXTRACTION_ID_PREFIX,
    MATTER_ID_PREFIX,
    RECORD_TABLES,
    RECORDS_FILENAME,
)
from src.domain.errors import ErrorCodes, NotFoundError
from src.domain.schemas import (
    Document,
    DocumentType,
    DraftRecord,
    ExtractionRecord,
    Matter,
    MatterStatus,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"


# =============================================================================
# Interfaces
# =============================================================================

class RecordTransaction(ABC):
    """트랜잭션 안에서 가능한 쓰기 연산."""

    @abstractmethod
    def insert_matter(self, matter: Matter) -> Matter: ...

    @abstractmethod
    def insert_document(self, document: Document) -> Document: ...

    @abstractmethod
    def insert_extraction(self, record: ExtractionRecord) -> ExtractionRecord: ...

    @abstractmethod
    def insert_draft(self, draft: DraftRecord) -> DraftRecord: ...

    @abstractmethod
    def update_document_text(self, document_id: str, text: str, truncated: bool) -> Document: ...

    @abstractmethod
    def advance_matter_status(self, matter_id: str, status: MatterStatus) -> Matter: ...

    @abstractmethod
    def max_draft_version(self, matter_id: str) -> int:
        """Matter의 최대 draft version (없으면 0)."""
        ...


class RecordStore(ABC):
    """
    Record Store 추상 인터페이스.

    조회는 트랜잭션 없이, 쓰기는 transaction() 안에서만.
    """

    @abstractmethod
    @contextmanager
    def transaction(self) -> Generator[RecordTransaction, None, None]: ...

    @abstractmethod
    def get_matter(self, matter_id: str) -> Matter | None: ...

    @abstractmethod
    def get_document(
        self, matter_id: str, doc_type: DocumentType = DocumentType.OFFICE_ACTION
    ) -> Document | None: ...

    @abstractmethod
    def get_extraction(self, matter_id: str) -> ExtractionRecord | None:
        """현재 Extraction (가장 최근 insert)."""
        ...

    @abstractmethod
    def list_extractions(self, matter_id: str) -> list[ExtractionRecord]: ...

    @abstractmethod
    def get_latest_draft(self, matter_id: str) -> DraftRecord | None:
        """현재 Draft ((version, seq) 최대)."""
        ...

    @abstractmethod
    def list_drafts(self, matter_id: str) -> list[DraftRecord]: ...


# =============================================================================
# JSON file implementation
# =============================================================================

def _now() -> str:
    return datetime.now(UTC).isoformat()


def _empty_state() -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "next_seq": 1,
        **{table: [] for table in RECORD_TABLES},
    }


class _JsonTransaction(RecordTransaction):
    """records.json 상태 사본 위에서 동작. commit은 JsonRecordStore가 담당."""

    def __init__(self, state: dict[str, Any]):
        self.state = state
        self.dirty = False

    def _stamp(self, row: dict[str, Any], prefix: str) -> dict[str, Any]:
        row["id"] = row.get("id") or generate_record_id(prefix)
        row["seq"] = self.state["next_seq"]
        row["created_at"] = row.get("created_at") or _now()
        self.state["next_seq"] += 1
        self.dirty = True
        return row

    def _find(self, table: str, row_id: str) -> dict[str, Any]:
        for row in self.state[table]:
            if row["id"] == row_id:
                return row
        raise NotFoundError(
            ErrorCodes.MATTER_NOT_FOUND if table == "matters" else ErrorCodes.DOCUMENT_NOT_FOUND,
            "Not found",
            table=table,
            id=row_id,
        )

    def insert_matter(self, matter: Matter) -> Matter:
        row = self._stamp(matter.to_dict(), MATTER_ID_PREFIX)
        row["updated_at"] = row["created_at"]
        self.state["matters"].append(row)
        return Matter.from_dict(row)

    def insert_document(self, document: Document) -> Document:
        row = self._stamp(document.to_dict(), DOCUMENT_ID_PREFIX)
        row["updated_at"] = row["created_at"]
        self.state["documents"].append(row)
        return Document.from_dict(row)

    def insert_extraction(self, record: ExtractionRecord) -> ExtractionRecord:
        row = self._stamp(record.to_dict(), EXTRACTION_ID_PREFIX)
        self.state["extractions"].append(row)
        return ExtractionRecord.from_dict(row)

    def insert_draft(self, draft: DraftRecord) -> DraftRecord:
        row = self._stamp(draft.to_dict(), DRAFT_ID_PREFIX)
        self.state["drafts"].append(row)
        return DraftRecord.from_dict(row)

    def update_document_text(self, document_id: str, text: str, truncated: bool) -> Document:
        row = self._find("documents", document_id)
        row["text"] = text
        row["text_truncated"] = truncated
        row["updated_at"] = _now()
        self.dirty = True
        return Document.from_dict(row)

    def advance_matter_status(self, matter_id: str, status: MatterStatus) -> Matter:
        row = self._find("matters", matter_id)
        current = MatterStatus(row["status"])
        if status.rank > current.rank:
            row["status"] = status.value
            row["updated_at"] = _now()
            self.dirty = True
        return Matter.from_dict(row)

    def max_draft_version(self, matter_id: str) -> int:
        versions = [
            int(row.get("version", 1))
            for row in self.state["drafts"]
            if row["matter_id"] == matter_id
        ]
        return max(versions, default=0)


class JsonRecordStore(RecordStore):
    """
    records.json 기반 Record Store.

    Usage:
        store = JsonRecordStore(data_dir, config)
        with store.transaction() as txn:
            matter = txn.insert_matter(Matter(title="...", jurisdiction=Jurisdiction.USPTO))
    """

    def __init__(self, root: Path, config: dict | None = None):
        self.root = root
        self.config = config or {}
        filename = self.config.get("paths", {}).get("records_file", RECORDS_FILENAME)
        self.path = root / filename

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return _empty_state()
        state = load_json_file(self.path)
        for table in RECORD_TABLES:
            state.setdefault(table, [])
        state.setdefault("next_seq", 1)
        return state

    @contextmanager
    def transaction(self) -> Generator[RecordTransaction, None, None]:
        """
        쓰기 트랜잭션.

        - 락 획득 후 상태 사본에 staging
        - 블록이 정상 종료되면 원자적 쓰기 1회로 commit
        - 예외 발생 시 사본 폐기 (기존 파일 그대로)
        """
        with store_lock(self.root, self.config):
            txn = _JsonTransaction(copy.deepcopy(self._load()))
            yield txn
            if txn.dirty:
                atomic_write_json(self.path, txn.state)

    def _rows(self, table: str, matter_id: str) -> list[dict[str, Any]]:
        return [row for row in self._load()[table] if row.get("matter_id") == matter_id]

    def get_matter(self, matter_id: str) -> Matter | None:
        for row in self._load()["matters"]:
            if row["id"] == matter_id:
                return Matter.from_dict(row)
        return None

    def get_document(
        self, matter_id: str, doc_type: DocumentType = DocumentType.OFFICE_ACTION
    ) -> Document | None:
        rows = [r for r in self._rows("documents", matter_id) if r.get("type") == doc_type.value]
        if not rows:
            return None
        return Document.from_dict(max(rows, key=lambda r: r["seq"]))

    def get_extraction(self, matter_id: str) -> ExtractionRecord | None:
        rows = self._rows("extractions", matter_id)
        if not rows:
            return None
        if len(rows) > 1:
            logger.info(
                f"Matter {matter_id} has {len(rows)} extraction rows; using latest insert"
            )
        return ExtractionRecord.from_dict(max(rows, key=lambda r: r["seq"]))

    def list_extractions(self, matter_id: str) -> list[ExtractionRecord]:
        rows = sorted(self._rows("extractions", matter_id), key=lambda r: r["seq"])
        return [ExtractionRecord.from_dict(r) for r in rows]

    def get_latest_draft(self, matter_id: str) -> DraftRecord | None:
        rows = self._rows("drafts", matter_id)
        if not rows:
            return None
        latest = max(rows, key=lambda r: (int(r.get("version", 1)), r["seq"]))
        return DraftRecord.from_dict(latest)

    def list_drafts(self, matter_id: str) -> list[DraftRecord]:
        rows = sorted(
            self._rows("drafts", matter_id),
            key=lambda r: (int(r.get("version", 1)), r["seq"]),
        )
        return [DraftRecord.from_dict(r) for r in rows]
