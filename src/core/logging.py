"""
Run logging: run log schema, events, warnings

규칙:
- stage 호출마다 run log 1개 (성공/실패 모두 저장)
- 경고 필수 컨텍스트: level, code, stage, message
- 실패 시 error_code + error_context 기록
- 벤더 호출마다 llm_calls / ocr_calls에 메타 기록 (파싱 실패 호출 포함)
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.ids import generate_run_id
from src.core.storage import atomic_write_json
from src.domain.errors import PipelineError
from src.domain.schemas import RunLog, WarningLog

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(
    stage: str,
    matter_id: str | None = None,
    user_id: str | None = None,
) -> RunLog:
    """
    새 RunLog 생성.

    Args:
        stage: ingest, get_extraction, generate_draft, export_draft, cleanup_ocr
        matter_id: 대상 Matter (ingest는 완료 후 채움)
        user_id: 호출자

    Returns:
        초기화된 RunLog
    """
    return RunLog(
        run_id=generate_run_id(),
        stage=stage,
        matter_id=matter_id,
        user_id=user_id,
        started_at=datetime.now(UTC).isoformat(),
        result="pending",
    )


def emit_warning(
    run_log: RunLog | None,
    code: str,
    message: str,
    detail: dict[str, Any] | None = None,
) -> None:
    """
    경고 이벤트 기록.

    run_log가 None이면 무시 (서비스 단독 호출 시).
    """
    if run_log is None:
        return
    run_log.warnings.append(
        WarningLog(
            level="warning",
            code=code,
            stage=run_log.stage,
            message=message,
            detail=detail,
        )
    )


def record_llm_call(run_log: RunLog | None, purpose: str, metadata: dict[str, Any]) -> None:
    """LLM 호출 메타 기록 (model_requested, model_used, prompt_hash 등)."""
    if run_log is None:
        return
    run_log.llm_calls.append({"purpose": purpose, **metadata})


def record_ocr_call(run_log: RunLog | None, metadata: dict[str, Any]) -> None:
    if run_log is None:
        return
    run_log.ocr_calls.append(metadata)


def complete_run_log(
    run_log: RunLog,
    success: bool,
    error: Exception | None = None,
) -> None:
    """
    RunLog 완료 처리.

    Args:
        run_log: RunLog 인스턴스
        success: 성공 여부
        error: 실패 원인 (PipelineError면 code/context 그대로 기록)
    """
    run_log.finished_at = datetime.now(UTC).isoformat()
    run_log.result = "success" if success else "failed"

    if not success and error is not None:
        if isinstance(error, PipelineError):
            run_log.error_code = error.code
            run_log.error_context = error.to_dict()
        else:
            run_log.error_code = type(error).__name__
            run_log.error_context = {"error": str(error)}


def save_run_log(run_log: RunLog, logs_dir: Path) -> Path:
    """
    RunLog를 파일로 저장.

    Returns:
        저장된 파일 경로 (logs/run_{run_id}.json)
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"run_{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    """RunLog 파일 로드."""
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_run_logs(logs_dir: Path) -> list[Path]:
    """
    logs/ 디렉터리의 모든 run log 파일 목록.

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob("run_*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
