"""
Data schemas for the pipeline.

규칙:
- 필드명 통일: API JSON 키와 동일하게 사용 (application_number, prior_art 등)
- 알 수 없는 값은 빈 문자열/빈 배열 (None 대신)
- 레코드는 id, seq, created_at을 Record Store가 채움
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# =============================================================================
# Enums
# =============================================================================

class Jurisdiction(str, Enum):
    """관할 특허청."""
    USPTO = "USPTO"
    EPO = "EPO"
    WIPO = "WIPO"

    @property
    def citation_authority(self) -> str:
        """초안 인용 기준 (EPO만 Guidelines, 나머지는 MPEP)."""
        return "EPO Guidelines" if self is Jurisdiction.EPO else "MPEP"


class MatterStatus(str, Enum):
    """
    Matter 상태.

    단조 증가만 허용: created → parsed → drafted
    """
    CREATED = "created"
    PARSED = "parsed"
    DRAFTED = "drafted"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [MatterStatus.CREATED, MatterStatus.PARSED, MatterStatus.DRAFTED]


class DocumentType(str, Enum):
    """문서 종류."""
    OFFICE_ACTION = "office_action"
    RESPONSE = "response"
    OTHER = "other"


class ExportFormat(str, Enum):
    """내보내기 형식."""
    TXT = "txt"
    DOCX = "docx"


class VersionPolicy(str, Enum):
    """
    Draft 버전 정책.

    increment: max(version) + 1
    fixed: 항상 1 (재생성 시에도 같은 버전으로 insert)
    """
    INCREMENT = "increment"
    FIXED = "fixed"


# =============================================================================
# Matter / Document
# =============================================================================

@dataclass
class Matter:
    """특허 심사 대응 1건."""
    title: str
    jurisdiction: Jurisdiction
    status: MatterStatus = MatterStatus.CREATED
    owner_id: str | None = None
    id: str | None = None
    seq: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "jurisdiction": self.jurisdiction.value,
            "status": self.status.value,
            "owner_id": self.owner_id,
            "seq": self.seq,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Matter":
        return cls(
            id=data.get("id"),
            title=data.get("title", ""),
            jurisdiction=Jurisdiction(data.get("jurisdiction", Jurisdiction.USPTO.value)),
            status=MatterStatus(data.get("status", MatterStatus.CREATED.value)),
            owner_id=data.get("owner_id"),
            seq=data.get("seq"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class Document:
    """업로드/파생 파일 참조."""
    matter_id: str
    type: DocumentType
    path: str  # Blob Store file_id
    text: str = ""  # OCR 텍스트 (잘렸거나 placeholder일 수 있음)
    text_truncated: bool = False
    id: str | None = None
    seq: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "matter_id": self.matter_id,
            "type": self.type.value,
            "path": self.path,
            "text": self.text,
            "text_truncated": self.text_truncated,
            "seq": self.seq,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            id=data.get("id"),
            matter_id=data["matter_id"],
            type=DocumentType(data.get("type", DocumentType.OFFICE_ACTION.value)),
            path=data.get("path", ""),
            text=data.get("text", ""),
            text_truncated=bool(data.get("text_truncated", False)),
            seq=data.get("seq"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


# =============================================================================
# Extraction
# =============================================================================

@dataclass
class ExtractionMetadata:
    """Office Action 서지 정보 (모두 선택, 없으면 빈 문자열)."""
    application_number: str = ""
    examiner: str = ""
    art_unit: str = ""
    mail_date: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "application_number": self.application_number,
            "examiner": self.examiner,
            "art_unit": self.art_unit,
            "mail_date": self.mail_date,
        }


@dataclass
class Rejection:
    """거절 이유 1건 (예: code="35 USC 103")."""
    code: str = ""
    basis: str = ""
    claims: list[str] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "basis": self.basis,
            "claims": list(self.claims),
            "summary": self.summary,
        }


@dataclass
class Formality:
    """방식 지적 사항."""
    topic: str = ""
    detail: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"topic": self.topic, "detail": self.detail}


@dataclass
class Claim:
    """청구항."""
    number: int
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"number": self.number, "text": self.text}


@dataclass
class PriorArt:
    """인용 선행기술."""
    kind: str = ""
    number: str = ""
    title: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "number": self.number, "title": self.title}


@dataclass
class ExtractionRecord:
    """
    Office Action에서 추출한 정규화 레코드.

    truncated: LLM에 보내기 전 입력이 잘렸는지 여부.
    Matter당 현재 레코드는 가장 최근에 insert된 것 (seq 최대).
    """
    metadata: ExtractionMetadata = field(default_factory=ExtractionMetadata)
    rejections: list[Rejection] = field(default_factory=list)
    formalities: list[Formality] = field(default_factory=list)
    claims: list[Claim] = field(default_factory=list)
    prior_art: list[PriorArt] = field(default_factory=list)
    truncated: bool = False

    # Record Store 메타데이터
    matter_id: str | None = None
    id: str | None = None
    seq: int | None = None
    created_at: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """API 응답용 (get-extraction)."""
        return {
            "metadata": self.metadata.to_dict(),
            "rejections": [r.to_dict() for r in self.rejections],
            "formalities": [f.to_dict() for f in self.formalities],
            "claims": [c.to_dict() for c in self.claims],
            "prior_art": [p.to_dict() for p in self.prior_art],
            "truncated": self.truncated,
        }

    def to_dict(self) -> dict[str, Any]:
        """Record Store 저장용."""
        return {
            "id": self.id,
            "matter_id": self.matter_id,
            "seq": self.seq,
            "created_at": self.created_at,
            **self.to_payload(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractionRecord":
        """저장된 (이미 정규화된) 레코드 복원."""
        return cls(
            metadata=ExtractionMetadata(**data.get("metadata", {})),
            rejections=[Rejection(**r) for r in data.get("rejections", [])],
            formalities=[Formality(**f) for f in data.get("formalities", [])],
            claims=[Claim(**c) for c in data.get("claims", [])],
            prior_art=[PriorArt(**p) for p in data.get("prior_art", [])],
            truncated=bool(data.get("truncated", False)),
            matter_id=data.get("matter_id"),
            id=data.get("id"),
            seq=data.get("seq"),
            created_at=data.get("created_at"),
        )

    def unknown_claim_references(self) -> list[str]:
        """
        rejections가 참조하지만 claims에 없는 청구항 번호.

        best-effort 검사 (강제하지 않음). claims가 비어 있으면 검사 불가 → [].
        """
        if not self.claims:
            return []
        known = {str(c.number) for c in self.claims}
        unknown: list[str] = []
        for rejection in self.rejections:
            for ref in rejection.claims:
                if ref not in known and ref not in unknown:
                    unknown.append(ref)
        return unknown


# =============================================================================
# Draft
# =============================================================================

@dataclass
class DraftingParams:
    """초안 생성 파라미터."""
    jurisdiction: Jurisdiction = Jurisdiction.USPTO
    style: str = "concise"
    sections: list[str] = field(
        default_factory=lambda: ["cover", "summary", "amendments", "arguments", "conclusion"]
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction.value,
            "style": self.style,
            "sections": list(self.sections),
        }


@dataclass
class Argument:
    """특정 거절/청구항에 대한 반박 논거."""
    target: str = ""
    text: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"target": self.target, "text": self.text}


@dataclass
class Amendment:
    """청구항 보정안."""
    claim: str = ""
    proposed: str = ""
    rationale: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"claim": self.claim, "proposed": self.proposed, "rationale": self.rationale}


@dataclass
class Citation:
    """인용 근거 (MPEP/EPO Guidelines 섹션 등)."""
    source: str = ""
    link: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "link": self.link}


@dataclass
class DraftRecord:
    """
    생성된 의견서 초안.

    version은 Matter 단위로 관리. "현재" 초안 = (version, seq) 최대.
    """
    matter_id: str
    outline: str = ""
    arguments: list[Argument] = field(default_factory=list)
    amendments: list[Amendment] = field(default_factory=list)
    citations: list[Citation] = field(default_factory=list)
    version: int = 1
    user_id: str | None = None
    params: DraftingParams | None = None

    id: str | None = None
    seq: int | None = None
    created_at: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """API 응답용 (generate-draft)."""
        return {
            "outline": self.outline,
            "arguments": [a.to_dict() for a in self.arguments],
            "amendments": [a.to_dict() for a in self.amendments],
            "citations": [c.to_dict() for c in self.citations],
            "version": self.version,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "matter_id": self.matter_id,
            "seq": self.seq,
            "created_at": self.created_at,
            "user_id": self.user_id,
            "params": self.params.to_dict() if self.params else None,
            **self.to_payload(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DraftRecord":
        params_data = data.get("params")
        params = None
        if params_data:
            params = DraftingParams(
                jurisdiction=Jurisdiction(params_data.get("jurisdiction", "USPTO")),
                style=params_data.get("style", "concise"),
                sections=list(params_data.get("sections", [])),
            )
        return cls(
            matter_id=data["matter_id"],
            outline=data.get("outline", ""),
            arguments=[Argument(**a) for a in data.get("arguments", [])],
            amendments=[Amendment(**a) for a in data.get("amendments", [])],
            citations=[Citation(**c) for c in data.get("citations", [])],
            version=int(data.get("version", 1)),
            user_id=data.get("user_id"),
            params=params,
            id=data.get("id"),
            seq=data.get("seq"),
            created_at=data.get("created_at"),
        )


# =============================================================================
# Caller Identity
# =============================================================================

@dataclass
class CallerIdentity:
    """외부 IdP가 확인한 호출자."""
    user_id: str
    email: str | None = None


# =============================================================================
# Run Log Schemas (core/logging.py에서 사용)
# =============================================================================

@dataclass
class WarningLog:
    """
    경고 로그.

    필수 컨텍스트: level, code, stage, message
    """
    level: str = "warning"
    code: str = ""
    stage: str = ""
    message: str = ""
    detail: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "detail": self.detail,
        }


@dataclass
class RunLog:
    """
    실행 로그.

    stage 호출 1회 단위 결과 및 메타데이터.
    """
    run_id: str
    stage: str  # ingest, get_extraction, generate_draft, export_draft, cleanup_ocr
    started_at: str  # ISO 8601
    matter_id: str | None = None
    user_id: str | None = None
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed

    warnings: list[WarningLog] = field(default_factory=list)

    # Provider 호출 메타 (LLMResponse.to_dict / OCRResult.to_dict)
    llm_calls: list[dict[str, Any]] = field(default_factory=list)
    ocr_calls: list[dict[str, Any]] = field(default_factory=list)

    # Error (if failed)
    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stage": self.stage,
            "matter_id": self.matter_id,
            "user_id": self.user_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "warnings": [w.to_dict() for w in self.warnings],
            "llm_calls": self.llm_calls,
            "ocr_calls": self.ocr_calls,
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
