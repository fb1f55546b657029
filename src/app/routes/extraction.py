"""
Extraction Route.

- GET /api/get-extraction?matter_id= → {metadata, rejections, formalities, claims, prior_art, truncated}
- 권한 없음/없음 → 404 (구분하지 않음)
"""

from typing import Any

from fastapi import APIRouter, Header, Query, Request

from src.app.dependencies import authenticate, get_services, require_field, stage_run
from src.core.authz import require_matter_access
from src.domain.errors import ErrorCodes, NotFoundError

router = APIRouter()


@router.get("/get-extraction")
async def get_extraction(
    request: Request,
    matter_id: str | None = Query(default=None),
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """현재 Extraction 조회."""
    services = get_services(request)

    with stage_run(services, "get_extraction", None, matter_id) as run_log:
        matter_id = require_field(matter_id, "matter_id")
        caller = await authenticate(services, authorization, run_log)
        require_matter_access(services.gate, services.records, caller.user_id, matter_id)

        record = services.records.get_extraction(matter_id)
        if record is None:
            raise NotFoundError(
                ErrorCodes.EXTRACTION_NOT_FOUND,
                "Not found or access denied",
                matter_id=matter_id,
            )

    return record.to_payload()
