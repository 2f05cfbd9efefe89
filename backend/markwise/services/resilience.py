"""
Markwise Backend — Provider Resilience Primitives
==================================================

What:  Circuit breaker and the tenacity retry policy shared by every LLM
       provider.
How:   Providers decorate their raw API call with `provider_retry(...)` and
       keep one CircuitBreaker per service instance. The breaker is checked
       outside the retried call, so an open circuit never consumes retries.

Retry policy:
    Exponential backoff with jitter (retry_min_wait → retry_max_wait),
    at most retry_max_attempts tries, and the last exception re-raised
    unchanged. Timeouts and errors the provider marks as permanent
    (bad credentials, malformed request) are never retried.
"""

import logging
import time
from typing import Optional, Tuple, Type

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from markwise.config import settings
from markwise.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    Circuit breaker guarding an upstream AI provider.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; uvicorn's async workers share one event loop per process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and inside the recovery window.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=max(remaining, 1))

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


def provider_retry(non_retryable: Tuple[Type[BaseException], ...] = ()):
    """
    Builds the tenacity decorator for a provider's raw API call.

    Args:
        non_retryable: Provider exception types that must fail immediately.
    """
    return retry(
        retry=retry_if_not_exception_type((TimeoutError,) + tuple(non_retryable)),
        stop=stop_after_attempt(settings.retry_max_attempts),
        # attempt 1 → ~2s, attempt 2 → ~4s, attempt 3 → ~8s (+ up to 1s jitter)
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
