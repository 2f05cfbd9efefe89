"""
Text extraction routes.

The client uploads a file (POST /api/uploads), creates the submission or
rubric row, then calls one of these with the returned fileUrl.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.database import get_db_session
from markwise.schemas.common import ErrorResponse
from markwise.schemas.extraction import (
    ExtractionResponse,
    ExtractRubricRequest,
    ExtractTextRequest,
)
from markwise.services.extraction_service import extraction_service
from markwise.services.llm import get_llm_service
from markwise.services.llm_base import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Extraction"])

_ERRORS = {
    400: {"description": "Missing fields", "model": ErrorResponse},
    404: {"description": "Submission or rubric not found", "model": ErrorResponse},
    422: {"description": "File could not be fetched or read", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
    503: {"description": "AI service unavailable", "model": ErrorResponse},
}


@router.post(
    "/extract_text",
    response_model=ExtractionResponse,
    responses=_ERRORS,
    summary="Extract text from a submission file",
    description=(
        "Reads a PDF, DOCX, image (OCR) or text file and stores the text on the "
        "submission. Parser problems are reported inside the extracted text; "
        "failures that stop extraction mark the submission 'failed'."
    ),
)
async def extract_text(
    body: ExtractTextRequest,
    db: AsyncSession = Depends(get_db_session),
    llm: LLMService = Depends(get_llm_service),
) -> ExtractionResponse:
    text, kind = await extraction_service.extract_submission_text(
        db, llm, body.file_url, body.submission_id
    )
    return ExtractionResponse(extracted_text=text, file_type=kind.value)


@router.post(
    "/extract_rubric_text",
    response_model=ExtractionResponse,
    responses=_ERRORS,
    summary="Extract text from a rubric file",
)
async def extract_rubric_text(
    body: ExtractRubricRequest,
    db: AsyncSession = Depends(get_db_session),
    llm: LLMService = Depends(get_llm_service),
) -> ExtractionResponse:
    text, kind = await extraction_service.extract_rubric_text(
        db, llm, body.file_url, body.rubric_id
    )
    return ExtractionResponse(
        extracted_text=text,
        file_type=kind.value,
        message="Rubric extraction completed successfully",
    )
