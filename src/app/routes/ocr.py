"""
Cleanup OCR Route.

- POST /api/cleanup-ocr {matter_id, reextract?} → {status: "reparsed"}
- Office Action 문서를 다시 OCR해 Document.text 갱신, reextract면 Extraction도 새로 insert
"""

from typing import Any

from fastapi import APIRouter, Header, Request
from pydantic import BaseModel

from src.app.dependencies import authenticate, get_services, require_field, stage_run
from src.core.authz import require_matter_access

router = APIRouter()


class CleanupOcrRequest(BaseModel):
    matter_id: str | None = None
    reextract: bool = False


@router.post("/cleanup-ocr")
async def cleanup_ocr(
    body: CleanupOcrRequest,
    request: Request,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """OCR 재실행."""
    services = get_services(request)

    with stage_run(services, "cleanup_ocr", None, body.matter_id) as run_log:
        matter_id = require_field(body.matter_id, "matter_id")
        caller = await authenticate(services, authorization, run_log)
        matter = require_matter_access(
            services.gate, services.records, caller.user_id, matter_id
        )

        result = await services.pipeline.reparse(matter, body.reextract, run_log)

    return result
