"""
Ingest Route: 업로드된 PDF → Matter(parsed).

- POST /api/ingest {file_id, jurisdiction, title} → {matter_id, status}
- OCR/LLM 실패 시 500, Matter/Document/Extraction 모두 생성되지 않음
- 없는 file_id 또는 다른 사용자가 올린 file_id는 500 BLOB_FETCH_FAILED (같은 메시지)
"""

from typing import Any

from fastapi import APIRouter, Header, Request
from pydantic import BaseModel

from src.app.dependencies import authenticate, get_services, require_field, stage_run

router = APIRouter()


class IngestRequest(BaseModel):
    file_id: str | None = None
    jurisdiction: str | None = None
    title: str | None = None


@router.post("/ingest")
async def ingest(
    body: IngestRequest,
    request: Request,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """OCR → 추출 → 저장."""
    services = get_services(request)

    with stage_run(services, "ingest", None) as run_log:
        file_id = require_field(body.file_id, "file_id")
        caller = await authenticate(services, authorization, run_log)

        matter = await services.pipeline.ingest(
            file_id=file_id,
            user_id=caller.user_id,
            jurisdiction=body.jurisdiction,
            title=body.title,
            run_log=run_log,
        )
        run_log.matter_id = matter.id

    return {"matter_id": matter.id, "status": matter.status.value}
