"""
Export Route.

- POST /api/export-draft {matter_id, format?} → 파일 바이트 (Content-Disposition: attachment)
- format: txt (기본) | docx, 그 외 값은 txt로 내보냄
"""

from fastapi import APIRouter, Header, Request
from fastapi.responses import Response
from pydantic import BaseModel

from src.app.dependencies import authenticate, get_services, require_field, stage_run
from src.core.authz import require_matter_access

router = APIRouter()


class ExportDraftRequest(BaseModel):
    matter_id: str | None = None
    format: str | None = None


@router.post("/export-draft")
async def export_draft(
    body: ExportDraftRequest,
    request: Request,
    authorization: str | None = Header(default=None),
) -> Response:
    """최신 Draft 내보내기."""
    services = get_services(request)

    with stage_run(services, "export_draft", None, body.matter_id) as run_log:
        matter_id = require_field(body.matter_id, "matter_id")
        caller = await authenticate(services, authorization, run_log)
        require_matter_access(services.gate, services.records, caller.user_id, matter_id)

        exported = services.exports.export(matter_id, body.format, run_log)

    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{exported.filename}"',
            "X-Draft-Version": str(exported.version),
        },
    )
