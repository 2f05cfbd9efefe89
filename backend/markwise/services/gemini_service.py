"""
Markwise Backend — Google Gemini Service Implementation
========================================================

What:  LLMService backed by Google Gemini. Selected with LLM_PROVIDER=gemini.
How:   OpenAI-style message lists are mapped onto Gemini's request shape:
       system turns become the model's system_instruction, assistant turns
       become "model" turns. Images are sent inline as bytes, so nothing is
       uploaded to Gemini file storage.

Why Gemini as the second provider:
    - Free tier is enough for development and small classrooms
    - Strong vision model for handwritten submissions
    - Native JSON output (response_mime_type) for grading
"""

import asyncio
import logging
from typing import Any, Dict, List, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from markwise.config import settings
from markwise.services.llm_base import LLMService, Message
from markwise.services.resilience import provider_retry

logger = logging.getLogger(__name__)

_NON_RETRYABLE = (
    google_exceptions.DeadlineExceeded,
    google_exceptions.InvalidArgument,
    google_exceptions.PermissionDenied,
    google_exceptions.Unauthenticated,
)


def to_gemini_contents(messages: List[Message]) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Splits chat messages into (system_instruction, contents).

    >>> to_gemini_contents([{"role": "system", "content": "Be brief"},
    ...                     {"role": "user", "content": "Hi"}])
    ('Be brief', [{'role': 'user', 'parts': ['Hi']}])
    """
    system_parts = []
    contents = []
    for message in messages:
        role = message.get("role", "user")
        if role == "system":
            system_parts.append(message["content"])
            continue
        contents.append({
            "role": "model" if role == "assistant" else "user",
            "parts": [message["content"]],
        })
    return "\n\n".join(system_parts), contents


def _list_model_names() -> List[str]:
    return [m.name for m in genai.list_models()]


class GeminiService(LLMService):
    provider_name = "gemini"
    display_name = "Gemini"
    api_key_env = "GEMINI_API_KEY"

    def __init__(self) -> None:
        super().__init__()
        # The SDK keeps auth in module-level state
        if settings.gemini_configured:
            genai.configure(api_key=settings.gemini_api_key)
        logger.info(
            "GeminiService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return settings.gemini_configured

    def _is_timeout(self, exc: BaseException) -> bool:
        return isinstance(exc, (google_exceptions.DeadlineExceeded, TimeoutError))

    @staticmethod
    def _response_text(response: Any) -> str:
        return response.text.strip() if response.text else ""

    @provider_retry(non_retryable=_NON_RETRYABLE)
    async def _complete_with_retry(
        self,
        messages: List[Message],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
        timeout: float,
        request_id: str,
    ) -> str:
        system_instruction, contents = to_gemini_contents(messages)
        model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=system_instruction or None,
        )
        generation_config: Dict[str, Any] = {
            "temperature": temperature,
            "max_output_tokens": max_tokens,
        }
        if json_mode:
            generation_config["response_mime_type"] = "application/json"

        try:
            response = await model.generate_content_async(
                contents,
                generation_config=generation_config,
                request_options={"timeout": timeout},
            )
        except Exception as e:
            logger.warning("[%s] Gemini completion attempt failed: %s", request_id, str(e))
            raise
        return self._response_text(response)

    @provider_retry(non_retryable=_NON_RETRYABLE)
    async def _read_image_with_retry(
        self,
        content: bytes,
        mime_type: str,
        prompt: str,
        timeout: float,
        request_id: str,
    ) -> str:
        model = genai.GenerativeModel(settings.gemini_model)
        try:
            response = await model.generate_content_async(
                [prompt, {"mime_type": mime_type, "data": content}],
                request_options={"timeout": timeout},
            )
        except Exception as e:
            logger.warning("[%s] Gemini vision attempt failed: %s", request_id, str(e))
            raise
        return self._response_text(response)

    async def health_check(self) -> bool:
        """Lists models: verifies the key and connectivity without spending tokens."""
        if not self.is_configured:
            return False
        try:
            # list_models pages lazily over the network; drain it off the event loop
            model_names = await asyncio.to_thread(_list_model_names)
            target = f"models/{settings.gemini_model}"
            if target not in model_names:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


gemini_service = GeminiService()
