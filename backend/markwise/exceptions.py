"""
Markwise Backend — Custom Exception Hierarchy
==============================================

Every error carries a user-safe `message` and a `context` dict for the
logs. main.py maps each class to a status code and error code; the
context is only echoed to the client where that mapping allows it.

    MarkwiseError                500
    ├── ValidationError          400
    ├── NotFoundError            404
    ├── ExtractionError          422
    ├── RateLimitExceededError   429
    ├── FileStorageError         500
    ├── DatabaseError            500  (message replaced by a generic one)
    ├── LLMResponseError         502
    ├── LLMServiceError          503
    │   └── LLMTimeoutError
    ├── CircuitBreakerOpenError  503
    └── ConfigurationError       503
"""

from typing import Any, Dict, Optional


class MarkwiseError(Exception):
    """Base class; subclasses mostly differ by `default_message`."""

    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.context: Dict[str, Any] = dict(context or {})
        super().__init__(self.message)


class ValidationError(MarkwiseError):
    """
    Client input broke a business rule: a missing required field, an
    unsupported or oversized file, an unknown time range. Schema-level
    problems stay FastAPI's own 422.
    """

    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.field = field
        if field:
            self.context["field"] = field


class NotFoundError(MarkwiseError):

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        else:
            message = f"The requested {resource} was not found"
        super().__init__(message, context)
        self.context["resource"] = resource
        if resource_id:
            self.context["resource_id"] = resource_id


class ExtractionError(MarkwiseError):
    """
    A file never reached a parser: download failure, oversized image,
    OCR failure. Parser errors inside a readable file come back as notice
    text in the extraction result instead.
    """

    default_message = "Text extraction failed"


class FileStorageError(MarkwiseError):
    default_message = "File storage operation failed"


class DatabaseError(MarkwiseError):
    default_message = "A database error occurred. Please try again later."


class ConfigurationError(MarkwiseError):
    """Usually a missing API key for the selected provider."""

    default_message = "Service is not configured"


class LLMResponseError(MarkwiseError):
    """The provider answered, but the payload is unusable."""

    default_message = "AI returned an invalid response"


class LLMServiceError(MarkwiseError):
    """The provider call failed after retries. `retry_after` feeds Retry-After."""

    default_message = "AI service is temporarily unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class LLMTimeoutError(LLMServiceError):
    default_message = "AI request timed out. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class CircuitBreakerOpenError(MarkwiseError):
    """Calls are refused while the breaker is OPEN; see services/resilience.py."""

    def __init__(self, recovery_time: int = 60, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            "AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds.",
            context,
        )
        self.recovery_time = recovery_time
        self.context["recovery_time"] = recovery_time


class RateLimitExceededError(MarkwiseError):

    def __init__(self, retry_after: int = 60, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Too many requests. Please wait {retry_after} seconds before retrying.",
            context,
        )
        self.retry_after = retry_after
        self.context["retry_after"] = retry_after
