"""
Upload Route: PDF → Blob Store.

- POST /api/upload (multipart "file") → {file_id}
- 인증 필요, file_id는 이후 /api/ingest에 전달
- 업로더 user_id를 blob과 함께 기록 (ingest는 업로더만 가능)
"""

from typing import Any

from fastapi import APIRouter, File, Header, Request, UploadFile

from src.app.dependencies import authenticate, get_services, stage_run
from src.domain.errors import ErrorCodes, ValidationError

router = APIRouter()


@router.post("/upload")
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    authorization: str | None = Header(default=None),
) -> dict[str, Any]:
    """업로드된 파일 저장."""
    services = get_services(request)

    with stage_run(services, "upload", None) as run_log:
        caller = await authenticate(services, authorization, run_log)

        data = await file.read()
        if not data:
            raise ValidationError(
                ErrorCodes.INVALID_FIELD,
                "Uploaded file is empty",
                field="file",
            )
        file_id = services.blobs.upload(
            file.filename or "upload.pdf", data, owner_id=caller.user_id
        )

    return {"file_id": file_id}
