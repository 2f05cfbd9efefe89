import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.database import get_db_session
from markwise.schemas.chat import ChatRequest, ChatResponse
from markwise.schemas.common import ErrorResponse
from markwise.services.chat_service import chat_service
from markwise.services.llm import get_llm_service
from markwise.services.llm_base import LLMService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Tutor"])


@router.post(
    "/chat_with_ai",
    response_model=ChatResponse,
    responses={
        400: {"description": "Missing required fields", "model": ErrorResponse},
        404: {"description": "Conversation not found", "model": ErrorResponse},
        503: {"description": "AI service unavailable", "model": ErrorResponse},
    },
    summary="Ask the StudyBuddy tutor",
    description=(
        "Answers a student's message using their recent grades, strengths and "
        "weaknesses. Omit conversationId to start a new conversation."
    ),
)
async def chat_with_ai(
    body: ChatRequest,
    db: AsyncSession = Depends(get_db_session),
    llm: LLMService = Depends(get_llm_service),
) -> ChatResponse:
    return await chat_service.chat_with_ai(db, llm, body)
