"""
Service 컨테이너 + FastAPI 의존성.

- 서비스는 첫 요청 시 config로 생성해 app.state.services에 보관 (lazy)
- 자격 증명 누락(ProviderError)은 요청 단위 500으로 드러남
- 테스트는 app.state.services를 미리 채워 벤더를 교체
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import Request

from src.app.providers.anthropic import ClaudeProvider
from src.app.providers.base import LLMProvider, OCRProvider, ProviderError
from src.app.providers.credentials import DEFAULT_SCOPE, ServiceAccountCredentialProvider
from src.app.providers.docai import DocumentAIOCRProvider
from src.app.providers.gemini import GeminiProvider
from src.app.providers.identity import (
    HttpIdentityProvider,
    IdentityProvider,
    StaticIdentityProvider,
)
from src.app.services.draft import DraftService
from src.app.services.export import ExportService
from src.app.services.extract import ExtractionService
from src.app.services.ocr import OCRService
from src.app.services.pipeline import PipelineService
from src.core.authz import AuthorizationGate, OwnershipGate
from src.core.blobs import BlobStore, LocalBlobStore
from src.core.logging import complete_run_log, create_run_log, save_run_log
from src.core.records import JsonRecordStore, RecordStore
from src.domain.constants import BLOBS_DIR, LOGS_DIR
from src.domain.errors import ErrorCodes, PipelineError, UpstreamError, ValidationError
from src.domain.schemas import CallerIdentity, RunLog

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent


@dataclass
class Services:
    """요청 처리에 필요한 모든 서비스."""
    config: dict
    records: RecordStore
    blobs: BlobStore
    gate: AuthorizationGate
    identity: IdentityProvider
    pipeline: PipelineService
    drafts: DraftService
    exports: ExportService
    logs_dir: Path

    async def aclose(self) -> None:
        """벤더 클라이언트 정리 (같은 provider는 한 번만)."""
        providers: list = [self.identity, self.pipeline.extraction.provider, self.drafts.provider]
        if self.pipeline.ocr is not None:
            providers.append(self.pipeline.ocr.provider)

        closed: set[int] = set()
        for provider in providers:
            if id(provider) in closed:
                continue
            closed.add(id(provider))
            await provider.aclose()


# =============================================================================
# Provider factories
# =============================================================================

def build_llm_provider(config: dict) -> LLMProvider:
    """
    ai.llm.provider → LLMProvider.

    Raises:
        ProviderError: 알 수 없는 provider / API 키 누락
    """
    llm_config = config.get("ai", {}).get("llm", {})
    provider = llm_config.get("provider", "gemini")
    common = {
        "max_tokens": int(llm_config.get("max_tokens", 8192)),
        "temperature": llm_config.get("temperature"),
        "max_retries": int(llm_config.get("max_retries", 0)),
    }

    if provider == "gemini":
        return GeminiProvider(
            model=llm_config.get("model", "gemini-2.5-flash"),
            fallback=llm_config.get("fallback"),
            **common,
        )
    if provider == "anthropic":
        return ClaudeProvider(
            model=llm_config.get("model", "claude-opus-4-5-20251101"),
            **common,
        )
    raise ProviderError("UNKNOWN_LLM_PROVIDER", f"Unknown ai.llm.provider: {provider}")


def build_ocr_provider(config: dict) -> OCRProvider | None:
    """ai.ocr.enabled가 false면 None (OCR 미사용 모드)."""
    ocr_config = config.get("ai", {}).get("ocr", {})
    if not ocr_config.get("enabled", True):
        return None

    credentials = ServiceAccountCredentialProvider.from_env(
        scope=ocr_config.get("scope", DEFAULT_SCOPE),
        token_uri=ocr_config.get("token_uri"),
    )
    return DocumentAIOCRProvider(
        credentials=credentials,
        project_id=ocr_config.get("project_id"),
        location=ocr_config.get("location"),
        processor_id=ocr_config.get("processor_id"),
        timeout=float(ocr_config.get("timeout", 120)),
    )


def build_identity_provider(config: dict) -> IdentityProvider:
    auth_config = config.get("auth", {})
    if auth_config.get("mode", "http") == "static":
        return StaticIdentityProvider(auth_config.get("static_tokens") or {})
    return HttpIdentityProvider(
        userinfo_url=auth_config.get("userinfo_url"),
        timeout=float(auth_config.get("timeout", 10)),
    )


def data_root(config: dict) -> Path:
    """paths.data_dir (상대 경로면 프로젝트 루트 기준)."""
    data_dir = Path(config.get("paths", {}).get("data_dir", "data"))
    return data_dir if data_dir.is_absolute() else PROJECT_ROOT / data_dir


def build_services(
    config: dict,
    root: Path | None = None,
    llm: LLMProvider | None = None,
    ocr_provider: OCRProvider | None = None,
    identity: IdentityProvider | None = None,
    ocr_enabled: bool | None = None,
) -> Services:
    """
    config → Services.

    llm/ocr_provider/identity가 주어지면 그대로 사용 (테스트, 로컬 실행).
    ocr_enabled가 None이면 ai.ocr.enabled를 따름.
    """
    root = root or data_root(config)
    paths = config.get("paths", {})

    records = JsonRecordStore(root, config)
    blobs = LocalBlobStore(root / paths.get("blobs_dir", BLOBS_DIR))
    gate = OwnershipGate(records)

    if ocr_enabled is None:
        ocr_enabled = bool(config.get("ai", {}).get("ocr", {}).get("enabled", True))
    if ocr_enabled and ocr_provider is None:
        ocr_provider = build_ocr_provider(config)
    ocr = OCRService(ocr_provider) if ocr_enabled and ocr_provider is not None else None

    llm = llm or build_llm_provider(config)
    extraction = ExtractionService(config, llm)

    return Services(
        config=config,
        records=records,
        blobs=blobs,
        gate=gate,
        identity=identity or build_identity_provider(config),
        pipeline=PipelineService(config, records, blobs, extraction, ocr),
        drafts=DraftService(config, llm, records),
        exports=ExportService(config, records),
        logs_dir=root / paths.get("logs_dir", LOGS_DIR),
    )


# =============================================================================
# FastAPI dependencies
# =============================================================================

def get_services(request: Request) -> Services:
    """
    app.state.services (없으면 생성).

    Raises:
        UpstreamError: 자격 증명/설정 누락
    """
    services: Services | None = getattr(request.app.state, "services", None)
    if services is None:
        try:
            services = build_services(getattr(request.app.state, "config", {}) or {})
        except ProviderError as e:
            logger.error(f"Service initialization failed: {e}")
            raise UpstreamError(e.code, e.message, **e.context) from e
        request.app.state.services = services
    return services


async def authenticate(
    services: Services,
    authorization: str | None,
    run_log: RunLog | None = None,
) -> CallerIdentity:
    """
    Authorization 헤더 → 호출자 (run_log에 user_id 기록).

    Raises:
        AuthError: 헤더 없음/무효
    """
    caller = await services.identity.get_user(authorization)
    if run_log is not None:
        run_log.user_id = caller.user_id
    return caller


def require_field(value: str | None, name: str) -> str:
    """
    필수 입력 확인.

    Raises:
        ValidationError: MISSING_REQUIRED_FIELD ("{name} required")
    """
    if value is None or not str(value).strip():
        raise ValidationError(
            ErrorCodes.MISSING_REQUIRED_FIELD,
            f"{name} required",
            field=name,
        )
    return str(value).strip()


@contextmanager
def stage_run(
    services: Services,
    stage: str,
    user_id: str | None,
    matter_id: str | None = None,
) -> Generator[RunLog, None, None]:
    """
    stage 1회 실행 단위 run log.

    - PipelineError는 그대로 전파
    - 그 외 예외는 INTERNAL_ERROR UpstreamError로 변환
    - 성공/실패 모두 finally에서 저장
    """
    run_log = create_run_log(stage, matter_id=matter_id, user_id=user_id)
    success = False
    error: Exception | None = None
    try:
        yield run_log
        success = True
    except PipelineError as e:
        error = e
        logger.warning(f"{stage} failed: {e}")
        raise
    except Exception as e:
        logger.error(f"{stage} failed with unexpected error: {e}", exc_info=True)
        error = UpstreamError(ErrorCodes.INTERNAL_ERROR, str(e), stage=stage)
        raise error from e
    finally:
        complete_run_log(run_log, success, error)
        try:
            save_run_log(run_log, services.logs_dir)
        except OSError as save_error:
            logger.error(f"Failed to save run log {run_log.run_id}: {save_error}")
