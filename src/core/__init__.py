"""
Core layer: 저장소/권한/로그 핵심 모듈.

역할:
- Record Store (records.json), Blob Store, 디렉터리 락, 원자적 쓰기
- Authorization Gate
- run log
"""

from .authz import AuthorizationGate, OwnershipGate, require_matter_access
from .blobs import BlobStore, LocalBlobStore
from .ids import generate_file_id, generate_record_id, generate_run_id
from .logging import complete_run_log, create_run_log, emit_warning, save_run_log
from .records import JsonRecordStore, RecordStore, RecordTransaction
from .storage import atomic_write_bytes, atomic_write_json, store_lock

__all__ = [
    # records
    "RecordStore",
    "RecordTransaction",
    "JsonRecordStore",
    # blobs
    "BlobStore",
    "LocalBlobStore",
    # authz
    "AuthorizationGate",
    "OwnershipGate",
    "require_matter_access",
    # storage
    "store_lock",
    "atomic_write_json",
    "atomic_write_bytes",
    # ids
    "generate_record_id",
    "generate_run_id",
    "generate_file_id",
    # logging
    "create_run_log",
    "emit_warning",
    "complete_run_log",
    "save_run_log",
]
