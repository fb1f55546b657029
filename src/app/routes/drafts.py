"""
Draft Route.

- POST /api/generate-draft
    {matter_id, jurisdiction?, rejections?, claims?, prior_art?, style?, sections?}
    → {outline, arguments, amendments, citations, version}
- rejections/claims/prior_art가 있으면 저장된 Extraction 대신 사용 (사용자 검토본)
"""

from typing import Any

from fastapi import APIRouter, Header, Request
from pydantic import BaseModel

from src.app.dependencies import authenticate, get_services, require_field, stage_run
from src.app.services.draft import apply_overrides
from src.core.authz import require_matter_access
from src.domain.errors import ErrorCodes, NotFoundError

router = APIRouter()


class GenerateDraftRequest(BaseModel):
    matter_id: str | None = None
    jurisdiction: str | None = None
    rejections: list[Any] | None = None
    claims: list[Any] | None = None
    prior_art: list[Any] | None = None
    style: str | None = None
    sections: list[str] | None = None


@router.post("/generate-draft")
async def generate_draft(
    body: GenerateDraftRequest,
    request: Request,
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """초안 생성 후 새 버전으로 저장."""
    services = get_services(request)

    with stage_run(services, "generate_draft", None, body.matter_id) as run_log:
        matter_id = require_field(body.matter_id, "matter_id")
        caller = await authenticate(services, authorization, run_log)
        matter = require_matter_access(
            services.gate, services.records, caller.user_id, matter_id
        )

        extraction = services.records.get_extraction(matter_id)
        if extraction is None:
            raise NotFoundError(
                ErrorCodes.EXTRACTION_NOT_FOUND,
                "Matter has no extraction; ingest the office action first",
                matter_id=matter_id,
            )
        extraction = apply_overrides(
            extraction,
            {
                "rejections": body.rejections,
                "claims": body.claims,
                "prior_art": body.prior_art,
            },
            run_log,
        )

        params = services.drafts.resolve_params(
            matter,
            jurisdiction=body.jurisdiction,
            style=body.style,
            sections=body.sections,
        )
        draft = await services.drafts.generate(
            matter, extraction, params, caller.user_id, run_log
        )

    return draft.to_payload()
