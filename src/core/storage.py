"""
Record Store 디스크 계층.

records.json은 이 모듈을 통해서만 쓰임. 쓰기는 디렉터리 락 안에서
임시 파일 → os.replace 로 교체되므로 읽는 쪽은 항상 완전한 파일만 봄.

락 디렉터리 안의 owner 파일(pid, host, 생성 시각)로 버려진 락을 판별:
- 같은 호스트: pid 생존 여부
- 다른 호스트 / owner 파일 없음: 나이가 STALE_LOCK_THRESHOLD_SECONDS 초과
"""

import json
import logging
import os
import socket
import tempfile
import time
from collections.abc import Generator
from contextlib import contextmanager, suppress
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.domain.constants import LOCK_DIR
from src.domain.errors import ErrorCodes, StoreError

logger = logging.getLogger(__name__)

STALE_LOCK_THRESHOLD_SECONDS = 600

LOCK_META_FILENAME = "lock.meta"

# =============================================================================
# Lock
# =============================================================================


def _hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


@dataclass
class LockOwner:
    pid: int = field(default_factory=os.getpid)
    hostname: str = field(default_factory=_hostname)
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @classmethod
    def read(cls, lock_dir: Path) -> "LockOwner | None":
        try:
            raw = json.loads((lock_dir / LOCK_META_FILENAME).read_text(encoding="utf-8"))
            return cls(pid=raw["pid"], hostname=raw["hostname"], created_at=raw["created_at"])
        except (OSError, ValueError, KeyError, TypeError):
            return None

    def write(self, lock_dir: Path) -> None:
        path = lock_dir / LOCK_META_FILENAME
        try:
            path.write_text(json.dumps(asdict(self)), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not record lock owner in {path}: {e}")

    def age_seconds(self) -> float | None:
        try:
            return (datetime.now(UTC) - datetime.fromisoformat(self.created_at)).total_seconds()
        except (ValueError, TypeError):
            return None


def _lock_is_abandoned(lock_dir: Path, threshold: float = STALE_LOCK_THRESHOLD_SECONDS) -> bool:
    owner = LockOwner.read(lock_dir)
    if owner is not None:
        if owner.hostname == _hostname() and owner.pid:
            return not _pid_alive(owner.pid)
        age = owner.age_seconds()
        if age is not None:
            return age > threshold

    try:
        return time.time() - lock_dir.stat().st_mtime > threshold
    except OSError:
        return False


def _remove_lock(lock_dir: Path) -> None:
    with suppress(FileNotFoundError):
        (lock_dir / LOCK_META_FILENAME).unlink()
    os.rmdir(lock_dir)


def _break_abandoned_lock(lock_dir: Path) -> None:
    if not _lock_is_abandoned(lock_dir):
        return
    owner = LockOwner.read(lock_dir)
    try:
        _remove_lock(lock_dir)
    except OSError:
        return
    logger.warning(
        f"Removed abandoned store lock {lock_dir} "
        f"(pid={owner.pid if owner else None}, host={owner.hostname if owner else None})"
    )


def _try_mkdir(lock_dir: Path) -> bool:
    try:
        os.mkdir(lock_dir)
    except FileExistsError:
        return False
    LockOwner().write(lock_dir)
    return True


@contextmanager
def store_lock(root: Path, config: dict) -> Generator[Path, None, None]:
    """
    root 아래 락 디렉터리를 잡고 블록이 끝나면 해제.

    첫 시도가 막히면 버려진 락인지 한 번 검사한 뒤
    pipeline.lock_retry_interval 간격으로 pipeline.lock_max_retries 회까지 재시도.

    Raises:
        StoreError: STORE_LOCK_TIMEOUT
    """
    pipeline_cfg = config.get("pipeline", {})
    interval = pipeline_cfg.get("lock_retry_interval", 0.1)
    max_retries = pipeline_cfg.get("lock_max_retries", 50)

    root.mkdir(parents=True, exist_ok=True)
    lock_dir = root / config.get("paths", {}).get("lock_dir", LOCK_DIR)

    for attempt in range(max_retries):
        if _try_mkdir(lock_dir):
            break
        if attempt == 0:
            _break_abandoned_lock(lock_dir)
            if _try_mkdir(lock_dir):
                break
        time.sleep(interval)
    else:
        raise StoreError(
            ErrorCodes.STORE_LOCK_TIMEOUT,
            "Record store is busy, try again",
            root=str(root),
            attempts=max_retries,
        )

    try:
        yield lock_dir
    finally:
        try:
            _remove_lock(lock_dir)
        except OSError as e:
            logger.warning(f"Could not release store lock {lock_dir}: {e}")


# =============================================================================
# Files
# =============================================================================


def _sync_directory(dir_path: Path) -> None:
    try:
        fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
    except (OSError, AttributeError) as e:
        logger.warning(f"Directory sync skipped for {dir_path}: {e}")
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.warning(f"Directory sync failed for {dir_path}: {e}")
    finally:
        os.close(fd)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """path를 data로 교체. 중간에 실패하면 기존 파일은 그대로."""
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(f"fsync failed for {path}: {e}")
        os.replace(tmp_path, path)
    except BaseException:
        with suppress(OSError):
            tmp_path.unlink()
        raise

    _sync_directory(path.parent)


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    atomic_write_bytes(path, json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8"))


def load_json_file(path: Path) -> dict[str, Any]:
    """
    Raises:
        StoreError: STORE_CORRUPT
    """
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise StoreError(
            ErrorCodes.STORE_CORRUPT,
            "Record store file is corrupt",
            path=str(path),
            error=str(e),
        ) from e
