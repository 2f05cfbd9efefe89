"""
Markwise Backend — OpenAI Service Implementation
=================================================

What:  LLMService backed by the OpenAI chat-completions API (gpt-4o-mini by
       default). Handles text completions, JSON-mode grading and image OCR
       through vision input.
How:   One AsyncOpenAI client per process, created lazily so importing the
       module never needs a key. The SDK's own retries are disabled;
       tenacity (provider_retry) owns retry policy so the circuit breaker
       sees one outcome per logical call.

OPENAI_BASE_URL may point at any OpenAI-compatible server.
"""

import base64
import logging
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from markwise.config import settings
from markwise.services.llm_base import LLMService, Message
from markwise.services.resilience import provider_retry

logger = logging.getLogger(__name__)

# Errors that a retry cannot fix
_NON_RETRYABLE = (
    openai.APITimeoutError,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.BadRequestError,
    openai.NotFoundError,
)


class OpenAIService(LLMService):
    provider_name = "openai"
    display_name = "OpenAI"
    api_key_env = "OPENAI_API_KEY"

    def __init__(self) -> None:
        super().__init__()
        self.model = settings.openai_model
        self._client: Optional[AsyncOpenAI] = None
        logger.info(
            "OpenAIService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            self.model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def is_configured(self) -> bool:
        return settings.openai_configured

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            kwargs = {
                "api_key": settings.openai_api_key,
                "timeout": settings.llm_request_timeout,
                "max_retries": 0,
            }
            if settings.openai_base_url:
                kwargs["base_url"] = settings.openai_base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    def _is_timeout(self, exc: BaseException) -> bool:
        return isinstance(exc, (openai.APITimeoutError, TimeoutError))

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
        request_kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "timeout": timeout,
        }
        if json_mode:
            request_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**request_kwargs)
        except Exception as e:
            logger.warning("[%s] OpenAI completion attempt failed: %s", request_id, str(e))
            raise

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "[%s] OpenAI usage: prompt=%s completion=%s",
                request_id,
                getattr(usage, "prompt_tokens", "?"),
                getattr(usage, "completion_tokens", "?"),
            )
        return (response.choices[0].message.content or "").strip()

    @provider_retry(non_retryable=_NON_RETRYABLE)
    async def _read_image_with_retry(
        self,
        content: bytes,
        mime_type: str,
        prompt: str,
        timeout: float,
        request_id: str,
    ) -> str:
        data_url = f"data:{mime_type};base64,{base64.b64encode(content).decode('utf-8')}"
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    }
                ],
                temperature=0,
                max_tokens=4000,
                timeout=timeout,
            )
        except Exception as e:
            logger.warning("[%s] OpenAI vision attempt failed: %s", request_id, str(e))
            raise
        return (response.choices[0].message.content or "").strip()

    async def health_check(self) -> bool:
        """Lists models: verifies the key and connectivity without spending tokens."""
        if not self.is_configured:
            return False
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.warning("OpenAI health check failed: %s", str(e))
            return False


openai_service = OpenAIService()
