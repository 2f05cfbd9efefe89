import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.database import get_db_session
from markwise.schemas.common import ErrorResponse
from markwise.schemas.lesson import (
    LessonPlanRequest,
    LessonPlanResponse,
    SlidesRequest,
    SlidesResponse,
)
from markwise.services.lesson_service import lesson_service
from markwise.services.llm import get_llm_service
from markwise.services.llm_base import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Lessons"])


@router.post(
    "/generate_lesson_plan",
    response_model=LessonPlanResponse,
    responses={
        400: {"description": "Missing required fields", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Generate a lesson plan",
)
async def generate_lesson_plan(
    body: LessonPlanRequest,
    db: AsyncSession = Depends(get_db_session),
    llm: LLMService = Depends(get_llm_service),
) -> LessonPlanResponse:
    lesson_plan = await lesson_service.generate_lesson_plan(db, llm, body)
    return LessonPlanResponse(lesson_plan=lesson_plan)


@router.post(
    "/generate_slides",
    response_model=SlidesResponse,
    responses={
        400: {"description": "Missing required fields", "model": ErrorResponse},
        502: {"description": "AI returned unusable slides", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Turn a lesson plan into a slide deck",
)
async def generate_slides(
    body: SlidesRequest,
    db: AsyncSession = Depends(get_db_session),
    llm: LLMService = Depends(get_llm_service),
) -> SlidesResponse:
    return await lesson_service.generate_slides(db, llm, body)
