"""
Upload and file-serving routes.

Uploaded files are stored under STORAGE_ROOT and addressed by an absolute
URL under /api/files/, which is what the client stores on submission and
rubric rows and later passes to the extraction endpoints.
"""

import logging

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import FileResponse

from markwise.exceptions import NotFoundError
from markwise.schemas.common import ErrorResponse
from markwise.schemas.extraction import UploadResponse
from markwise.services.file_service import file_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Files"])


@router.post(
    "/uploads",
    status_code=201,
    response_model=UploadResponse,
    responses={
        400: {"description": "Unsupported, empty or oversized file", "model": ErrorResponse},
        500: {"description": "Storage failure", "model": ErrorResponse},
    },
    summary="Upload a submission or rubric file",
)
async def upload_file(
    file: UploadFile = File(..., description="PDF, DOCX, image or text file (max 10MB)"),
) -> UploadResponse:
    try:
        content = await file.read()
        filename = file.filename or "upload"
        logger.info("Received upload: filename=%s, size=%d bytes", filename, len(content))
        _, relative_path = await file_service.validate_and_store(filename, content)
    finally:
        await file.close()

    return UploadResponse(
        file_url=file_service.public_url(relative_path),
        file_name=filename,
        size=len(content),
    )


@router.get(
    "/files/{file_path:path}",
    response_class=FileResponse,
    responses={
        400: {"description": "Invalid file path", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Serve a stored file",
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = file_service.resolve_storage_path(file_path)
    if not full_path.is_file():
        raise NotFoundError(resource="file", resource_id=file_path)

    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
