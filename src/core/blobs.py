"""
Blob Store: 업로드된 PDF 저장/조회.

외부 저장소로 취급: upload / download / owner_of 세 연산만 사용.
LocalBlobStore는 data/blobs/ 아래에 file_id 그대로 저장하고
업로더는 data/blobs/.owners/<file_id> 에 기록 (file_id로는 접근 불가).
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from src.core.ids import generate_file_id, sanitize_name
from src.core.storage import atomic_write_bytes
from src.domain.errors import ErrorCodes, NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)

OWNERS_DIR = ".owners"


class BlobStore(ABC):
    """Blob Store 추상 인터페이스."""

    @abstractmethod
    def upload(self, filename: str, data: bytes, owner_id: str | None = None) -> str:
        """
        파일 저장.

        Args:
            filename: 원본 파일명 (확장자만 사용)
            data: 파일 바이트
            owner_id: 업로더 user_id (None이면 기록 안 함)

        Returns:
            file_id
        """
        ...

    @abstractmethod
    def download(self, file_id: str) -> bytes:
        """
        파일 조회.

        Raises:
            NotFoundError: BLOB_NOT_FOUND
        """
        ...

    def owner_of(self, file_id: str) -> str | None:
        """업로더 user_id. 기록이 없으면 None."""
        return None


class LocalBlobStore(BlobStore):
    """
    로컬 디렉터리 Blob Store.

    file_id에 경로 구분자/상위 참조가 있으면 거부 (path traversal 방지).
    """

    def __init__(self, root: Path):
        self.root = root

    def _resolve(self, file_id: str) -> Path:
        if not file_id or sanitize_name(file_id) != file_id or file_id.startswith("."):
            raise ValidationError(
                ErrorCodes.INVALID_FIELD,
                "file_id is invalid",
                file_id=file_id,
            )
        return self.root / file_id

    def _owner_path(self, file_id: str) -> Path:
        return self.root / OWNERS_DIR / self._resolve(file_id).name

    def upload(self, filename: str, data: bytes, owner_id: str | None = None) -> str:
        file_id = generate_file_id(filename)
        path = self._resolve(file_id)
        try:
            atomic_write_bytes(path, data)
            if owner_id is not None:
                atomic_write_bytes(self._owner_path(file_id), owner_id.encode("utf-8"))
        except OSError as e:
            raise StoreError(
                ErrorCodes.BLOB_WRITE_FAILED,
                f"File upload failed: {e}",
                file_id=file_id,
            ) from e

        logger.info(f"Stored blob {file_id} ({len(data)} bytes)")
        return file_id

    def download(self, file_id: str) -> bytes:
        path = self._resolve(file_id)
        if not path.is_file():
            raise NotFoundError(
                ErrorCodes.BLOB_NOT_FOUND,
                "File fetch failed: object not found",
                file_id=file_id,
            )
        return path.read_bytes()

    def owner_of(self, file_id: str) -> str | None:
        path = self._owner_path(file_id)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")
