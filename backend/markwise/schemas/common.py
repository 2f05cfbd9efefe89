"""
Markwise Backend — Shared API Schemas
======================================

What:  Base model and the envelope types shared by every endpoint.
Why:   The web client speaks camelCase JSON; Python code uses snake_case.
How:   CamelModel generates camelCase aliases for every field. FastAPI
       serializes responses by alias, and requests are accepted in either
       form (populate_by_name).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "success": false,
            "error": "validation_error",
            "message": "Missing required fields",
            "details": {"field": "rubric"},
            "request_id": "3f2a9c1d"
        }
    """
    success: bool = Field(default=False)
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    llm_provider: str = Field(description="Configured LLM provider")
    llm: str = Field(
        description="LLM status: available, unavailable, not_configured, circuit_open"
    )
    uptime_seconds: float = Field(description="Seconds since service started")
