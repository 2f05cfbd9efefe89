"""
Markwise Backend — Abstract LLM Service Interface
==================================================

What:  Provider-neutral contract for the two AI capabilities the workflows
       need: chat completions (grading, lesson plans, slides, tutoring)
       and reading text out of an image (OCR for submissions and rubrics).
How:   Concrete providers implement the raw, retry-decorated calls. This
       base class owns everything around them: configuration checks, the
       circuit breaker, timing logs and translation of provider errors
       into LLMServiceError / LLMTimeoutError.

Error Handling Chain:
    missing key          → ConfigurationError (503, no call made)
    circuit open         → CircuitBreakerOpenError (503, no call made)
    provider call fails  → tenacity retries → breaker records failure
                         → LLMServiceError (503)
    call times out       → breaker records failure → LLMTimeoutError (503)
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from markwise.config import settings
from markwise.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    LLMServiceError,
    LLMTimeoutError,
)
from markwise.services.prompts import IMAGE_OCR_PROMPT
from markwise.services.resilience import CircuitBreaker

logger = logging.getLogger(__name__)

# OpenAI-style chat message: {"role": "system" | "user" | "assistant", "content": str}
Message = Dict[str, str]


class LLMService(ABC):
    """
    Abstract interface for AI text generation and image reading.

    Implementations:
        - OpenAIService: OpenAI chat completions (default)
        - GeminiService: Google Gemini

    One instance per provider per process; the instance holds the circuit
    breaker, so it must be shared across requests.
    """

    provider_name: str = "llm"
    display_name: str = "LLM"
    api_key_env: str = "LLM_API_KEY"

    def __init__(self) -> None:
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True when an API key for this provider is present."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight connectivity test that does not consume tokens."""
        ...

    @abstractmethod
    async def _complete_with_retry(
        self,
        messages: List[Message],
        temperature: float,
        max_tokens: int,
        json_mode: bool,
        timeout: float,
        request_id: str,
    ) -> str:
        """Raw completion call; implementations decorate it with provider_retry."""
        ...

    @abstractmethod
    async def _read_image_with_retry(
        self,
        content: bytes,
        mime_type: str,
        prompt: str,
        timeout: float,
        request_id: str,
    ) -> str:
        """Raw vision call; implementations decorate it with provider_retry."""
        ...

    def _is_timeout(self, exc: BaseException) -> bool:
        return isinstance(exc, TimeoutError)

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError(
                message=f"{self.display_name} API key not configured",
                context={"provider": self.provider_name, "env_var": self.api_key_env},
            )

    async def complete(
        self,
        messages: List[Message],
        *,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        json_mode: bool = False,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Run one chat completion and return the assistant's text.

        Args:
            messages: System/user/assistant turns in order.
            json_mode: Ask the provider to return a single JSON object.
            timeout: Seconds for the call; defaults to llm_request_timeout.

        Raises:
            ConfigurationError, CircuitBreakerOpenError, LLMServiceError,
            LLMTimeoutError
        """
        self.ensure_configured()
        return await self._guarded(
            "completion",
            self._complete_with_retry,
            messages,
            temperature,
            max_tokens,
            json_mode,
            timeout or settings.llm_request_timeout,
        )

    async def read_image(
        self,
        content: bytes,
        mime_type: str,
        prompt: str = IMAGE_OCR_PROMPT,
        timeout: Optional[float] = None,
    ) -> str:
        """Extract the text visible in an image (printed or handwritten)."""
        self.ensure_configured()
        return await self._guarded(
            "image_ocr",
            self._read_image_with_retry,
            content,
            mime_type,
            prompt,
            timeout or settings.llm_request_timeout,
        )

    async def _guarded(
        self,
        operation: str,
        call: Callable[..., Awaitable[str]],
        *args: Any,
    ) -> str:
        # Short per-call id correlates the retry/timing logs of one call
        request_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute()

        logger.info("[%s] %s %s request started", request_id, self.provider_name, operation)
        start_time = time.time()
        try:
            result = await call(*args, request_id)
        except CircuitBreakerOpenError:
            raise
        except Exception as e:
            self.circuit_breaker.record_failure()
            duration_ms = (time.time() - start_time) * 1000
            if self._is_timeout(e):
                logger.error(
                    "[%s] %s %s timed out after %.0fms",
                    request_id,
                    self.provider_name,
                    operation,
                    duration_ms,
                )
                raise LLMTimeoutError(
                    context={"request_id": request_id, "provider": self.provider_name},
                ) from e
            logger.error(
                "[%s] %s %s failed after %.0fms: %s",
                request_id,
                self.provider_name,
                operation,
                duration_ms,
                str(e),
                exc_info=True,
            )
            raise LLMServiceError(
                message="AI service request failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={
                    "request_id": request_id,
                    "provider": self.provider_name,
                    "error_type": type(e).__name__,
                },
            ) from e

        self.circuit_breaker.record_success()
        logger.info(
            "[%s] %s %s completed in %.0fms (%d chars)",
            request_id,
            self.provider_name,
            operation,
            (time.time() - start_time) * 1000,
            len(result),
        )
        return result
