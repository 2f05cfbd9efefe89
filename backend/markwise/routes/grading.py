import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.database import get_db_session
from markwise.schemas.common import ErrorResponse
from markwise.schemas.grading import GradeResponse, GradeSubmissionRequest
from markwise.services.grading_service import grading_service
from markwise.services.llm import get_llm_service
from markwise.services.llm_base import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Grading"])


@router.post(
    "/grade_submission",
    response_model=GradeResponse,
    responses={
        400: {"description": "Missing required fields", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        503: {"description": "AI service unavailable or timed out", "model": ErrorResponse},
    },
    summary="Grade a submission against a rubric",
    description=(
        "Scores the submission out of the assignment's max score, derives the "
        "letter grade from the classroom's grading scale and stores the grade."
    ),
)
async def grade_submission(
    body: GradeSubmissionRequest,
    db: AsyncSession = Depends(get_db_session),
    llm: LLMService = Depends(get_llm_service),
) -> GradeResponse:
    return await grading_service.grade_submission(db, llm, body)
