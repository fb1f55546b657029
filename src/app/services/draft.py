"""
Draft Service: ExtractionRecord + DraftingParams → DraftRecord.

- 관할에 따라 인용 기준 선택 (USPTO/WIPO: MPEP, EPO: EPO Guidelines)
- 요청 섹션 순서를 지시문에 그대로 반영
- 버전 정책: drafts.version_policy (increment | fixed)
- 파싱 실패 → MalformedOutputError, 아무것도 저장하지 않음
"""

import json
import logging
from typing import Any

from src.app.providers.base import LLMError, LLMProvider
from src.app.services.extract import normalize_extraction
from src.app.services.parsing import parse_json_object, require_parsed
from src.core.logging import emit_warning, record_llm_call
from src.core.records import RecordStore
from src.domain.constants import DEFAULT_DRAFT_SECTIONS, DEFAULT_DRAFT_STYLE
from src.domain.errors import ErrorCodes, UpstreamError, ValidationError
from src.domain.schemas import (
    Amendment,
    Argument,
    Citation,
    DraftingParams,
    DraftRecord,
    ExtractionRecord,
    Jurisdiction,
    Matter,
    MatterStatus,
    RunLog,
    VersionPolicy,
)

logger = logging.getLogger(__name__)

OVERRIDABLE_FIELDS = ("rejections", "claims", "prior_art")


def build_system_prompt(params: DraftingParams) -> str:
    """관할/스타일/섹션 순서로 초안 지시문 구성."""
    authority = params.jurisdiction.citation_authority
    sections = " -> ".join(params.sections) if params.sections else "free form"
    return (
        f"You draft a response to a {params.jurisdiction.value} office action.\n"
        f"Cite {authority} sections where they support an argument.\n"
        f"Writing style: {params.style}.\n"
        f"Organize the outline in this section order: {sections}.\n"
        "Return strict JSON with exactly these keys:\n"
        '{"outline": "", '
        '"arguments": [{"target": "", "text": ""}], '
        '"amendments": [{"claim": "", "proposed": "", "rationale": ""}], '
        '"citations": [{"source": "", "link": ""}]}\n'
        "- arguments[].target names the rejection or claim being addressed.\n"
        "- Use empty arrays when there is nothing to argue, amend or cite.\n"
        "- Do not invent prior art or claim text that is not in the input.\n"
        "Output JSON only."
    )


def build_user_prompt(extraction: ExtractionRecord) -> str:
    payload = extraction.to_payload()
    payload.pop("truncated", None)
    return "Extracted office action data:\n\n" + json.dumps(
        payload, ensure_ascii=False, indent=2
    )


def apply_overrides(
    extraction: ExtractionRecord,
    overrides: dict[str, Any],
    run_log: RunLog | None = None,
) -> ExtractionRecord:
    """
    사용자 검토 후 수정된 rejections/claims/prior_art로 교체.

    None인 필드는 저장된 값 유지. 교체 값도 동일하게 정규화.
    """
    supplied = {k: v for k, v in overrides.items() if k in OVERRIDABLE_FIELDS and v is not None}
    if not supplied:
        return extraction

    merged = {**extraction.to_payload(), **supplied}
    record = normalize_extraction(merged, run_log)
    record.truncated = extraction.truncated
    record.matter_id = extraction.matter_id
    record.id = extraction.id
    record.seq = extraction.seq
    record.created_at = extraction.created_at
    return record


def _as_str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _entries(data: dict[str, Any], key: str, run_log: RunLog | None) -> list[dict[str, Any]]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    entries = [item for item in value if isinstance(item, dict)]
    dropped = len(value) - len(entries)
    if dropped:
        emit_warning(
            run_log,
            ErrorCodes.ENTRY_DROPPED,
            f"{dropped} non-object entries in '{key}' dropped",
            {"field": key},
        )
    return entries


def normalize_draft(data: dict[str, Any], run_log: RunLog | None = None) -> dict[str, Any]:
    """LLM JSON → DraftRecord 필드 (outline: str, 나머지: 객체 리스트)."""
    outline = data.get("outline")
    if isinstance(outline, list):
        outline = "\n".join(_as_str(line) for line in outline)

    return {
        "outline": _as_str(outline),
        "arguments": [
            Argument(target=_as_str(item.get("target")), text=_as_str(item.get("text")))
            for item in _entries(data, "arguments", run_log)
        ],
        "amendments": [
            Amendment(
                claim=_as_str(item.get("claim")),
                proposed=_as_str(item.get("proposed")),
                rationale=_as_str(item.get("rationale")),
            )
            for item in _entries(data, "amendments", run_log)
        ],
        "citations": [
            Citation(source=_as_str(item.get("source")), link=_as_str(item.get("link")) or None)
            for item in _entries(data, "citations", run_log)
        ],
    }


class DraftService:
    """
    초안 생성 서비스.

    Usage:
        service = DraftService(config, provider, records)
        params = service.resolve_params(matter, jurisdiction="EPO")
        draft = await service.generate(matter, extraction, params, user_id)
    """

    def __init__(self, config: dict, provider: LLMProvider, records: RecordStore):
        self.config = config
        self.provider = provider
        self.records = records

        drafts_config = config.get("drafts", {})
        policy = drafts_config.get("version_policy", VersionPolicy.INCREMENT.value)
        try:
            self.version_policy = VersionPolicy(policy)
        except ValueError as e:
            raise ValidationError(
                ErrorCodes.INVALID_FIELD,
                f"Unknown drafts.version_policy: {policy}",
            ) from e
        self.default_style = drafts_config.get("default_style", DEFAULT_DRAFT_STYLE)
        self.default_sections = list(
            drafts_config.get("default_sections", DEFAULT_DRAFT_SECTIONS)
        )

    def resolve_params(
        self,
        matter: Matter,
        jurisdiction: str | None = None,
        style: str | None = None,
        sections: list[str] | None = None,
    ) -> DraftingParams:
        """
        요청 값 + 기본값 → DraftingParams.

        Raises:
            ValidationError: 알 수 없는 관할
        """
        if jurisdiction:
            try:
                resolved = Jurisdiction(jurisdiction.upper())
            except ValueError as e:
                raise ValidationError(
                    ErrorCodes.INVALID_FIELD,
                    f"Unsupported jurisdiction: {jurisdiction}",
                    field="jurisdiction",
                ) from e
        else:
            resolved = matter.jurisdiction or Jurisdiction.USPTO

        return DraftingParams(
            jurisdiction=resolved,
            style=style or self.default_style,
            sections=list(sections) if sections else list(self.default_sections),
        )

    async def generate(
        self,
        matter: Matter,
        extraction: ExtractionRecord,
        params: DraftingParams,
        user_id: str,
        run_log: RunLog | None = None,
    ) -> DraftRecord:
        """
        LLM 호출 → 정규화 → 새 Draft insert → Matter 상태 drafted.

        Raises:
            UpstreamError: LLM_FAILED / LLM_MALFORMED_OUTPUT
        """
        try:
            response = await self.provider.complete_json(
                build_system_prompt(params),
                build_user_prompt(extraction),
            )
        except LLMError as e:
            raise UpstreamError(
                ErrorCodes.LLM_FAILED,
                e.message,
                vendor_code=e.code,
                stage="draft",
            ) from e

        record_llm_call(run_log, "draft", response.to_dict())
        fields = normalize_draft(require_parsed(parse_json_object(response.text), "draft"), run_log)
        return self.save(matter, fields, params, user_id)

    def save(
        self,
        matter: Matter,
        fields: dict[str, Any],
        params: DraftingParams,
        user_id: str,
    ) -> DraftRecord:
        """버전 정책에 따라 버전 결정 후 insert (같은 트랜잭션)."""
        with self.records.transaction() as txn:
            if self.version_policy is VersionPolicy.INCREMENT:
                version = txn.max_draft_version(matter.id) + 1
            else:
                version = 1
            draft = txn.insert_draft(
                DraftRecord(
                    matter_id=matter.id,
                    version=version,
                    user_id=user_id,
                    params=params,
                    **fields,
                )
            )
            txn.advance_matter_status(matter.id, MatterStatus.DRAFTED)

        logger.info(f"Draft saved: matter={matter.id}, version={draft.version}, id={draft.id}")
        return draft
