"""
Provider selection for the AI workflows.

Routes receive the active provider through `Depends(get_llm_service)`,
which keeps the choice in one place and lets tests substitute a fake via
`app.dependency_overrides`.
"""

from markwise.config import settings
from markwise.services.gemini_service import gemini_service
from markwise.services.llm_base import LLMService
from markwise.services.openai_service import openai_service


def get_llm_service() -> LLMService:
    if settings.llm_provider == "gemini":
        return gemini_service
    return openai_service
