"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uvicorn src.app.main:app --reload
- 프로덕션: uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.app.routes import drafts, export, extraction, ingest, ocr, upload
from src.domain.errors import PipelineError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Expose-Headers": "Content-Disposition, X-Draft-Version",
}

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = Path(__file__).parent.parent.parent / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def configure_logging(config: dict) -> None:
    level = str(config.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 로깅 설정
    서비스(벤더 클라이언트 포함)는 첫 요청 시 생성 (src/app/dependencies.py)
    종료 시: 생성된 서비스의 벤더 클라이언트 정리
    """
    if getattr(app.state, "config", None) is None:
        app.state.config = load_config()
    configure_logging(app.state.config)
    logger.info("Office action pipeline started")

    yield

    services = getattr(app.state, "services", None)
    if services is not None:
        await services.aclose()
    logger.info("Office action pipeline stopped")


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Office Action Response Pipeline",
    description="Office Action PDF → OCR → 구조화 추출 → 의견서 초안 → 내보내기",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def cors_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """모든 응답에 permissive CORS, OPTIONS preflight는 빈 body로 즉시 응답."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


# =============================================================================
# Exception Handlers
# =============================================================================
# 응답 body는 항상 {"error": message} (+ PipelineError면 code)


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", []) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"error": f"{location}: {message}" if location else message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


# =============================================================================
# Routes
# =============================================================================

app.include_router(upload.router, prefix="/api", tags=["Upload"])
app.include_router(ingest.router, prefix="/api", tags=["Ingest"])
app.include_router(extraction.router, prefix="/api", tags=["Extraction"])
app.include_router(drafts.router, prefix="/api", tags=["Drafts"])
app.include_router(export.router, prefix="/api", tags=["Export"])
app.include_router(ocr.router, prefix="/api", tags=["OCR"])


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
