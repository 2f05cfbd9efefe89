"""
Markwise Backend — FastAPI Application Factory
===============================================

create_app() wires middleware, error handlers and routers together;
uvicorn serves the module-level `app` (uvicorn markwise.main:app).

Request path, outermost first:

    RequestID → RateLimit → access log → GZip → CORS → router

    /api/uploads, /api/files/*                  files
    /api/extract_text, /api/extract_rubric_text extraction
    /api/grade_submission                       grading
    /api/generate_lesson_plan, /api/generate_slides
    /api/chat_with_ai
    /api/analytics/*
    /health

Every handled error has the same body:

    {"success": false, "error": "<code>", "message": "...",
     "details": {...} | null, "request_id": "3f2a9c1d"}
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, NamedTuple, Optional, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from markwise import __version__
from markwise.config import settings
from markwise.database import dispose_engine
from markwise.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    DatabaseError,
    ExtractionError,
    FileStorageError,
    LLMResponseError,
    LLMServiceError,
    MarkwiseError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from markwise.middleware.logging import RequestLoggingMiddleware
from markwise.middleware.rate_limit import RateLimitMiddleware
from markwise.middleware.request_id import RequestIDMiddleware, request_id_var
from markwise.routes import analytics, chat, extraction, files, grading, health, lessons

logger = logging.getLogger(__name__)

GENERIC_SERVER_MESSAGE = "An internal error occurred. Please try again later."

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "openai")

ROUTERS = (
    files.router,
    extraction.router,
    grading.router,
    lessons.router,
    chat.router,
    analytics.router,
    health.router,
)


def setup_logging() -> None:
    """Format: 2025-03-14T09:12:03 [INFO] markwise.services.grading_service: ..."""
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.getLevelName(settings.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    logger.info(
        "Markwise Backend %s starting (provider=%s, listening on %s:%d)",
        __version__,
        settings.llm_provider,
        settings.backend_host,
        settings.backend_port,
    )

    try:
        settings.validate_required_for_production()
    except ValueError as exc:
        # Keep serving: /health reports the problem and AI endpoints answer 503
        logger.error("%s", exc)

    storage_root = Path(settings.storage_root)
    storage_root.mkdir(parents=True, exist_ok=True)
    logger.info("File storage at %s", storage_root.resolve())

    yield

    logger.info("Markwise Backend shutting down")
    await dispose_engine()


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = {
        "success": False,
        "error": error,
        "message": message,
        "details": details or None,
        "request_id": request_id_var.get(""),
    }
    return JSONResponse(body, status_code=status_code, headers=headers)


class ErrorMapping(NamedTuple):
    status_code: int
    error: str
    log_level: int
    # Context goes to the client as `details`; otherwise it is only logged
    expose_context: bool = False
    # Replaces exc.message in the response body
    public_message: Optional[str] = None


ERROR_MAPPINGS: Dict[Type[MarkwiseError], ErrorMapping] = {
    ValidationError: ErrorMapping(400, "validation_error", logging.WARNING, expose_context=True),
    NotFoundError: ErrorMapping(404, "not_found", logging.INFO),
    ExtractionError: ErrorMapping(422, "extraction_failed", logging.WARNING),
    RateLimitExceededError: ErrorMapping(
        429, "rate_limit_exceeded", logging.WARNING, expose_context=True
    ),
    LLMResponseError: ErrorMapping(502, "llm_response_invalid", logging.ERROR),
    CircuitBreakerOpenError: ErrorMapping(503, "service_unavailable", logging.WARNING),
    LLMServiceError: ErrorMapping(503, "llm_service_error", logging.ERROR, expose_context=True),
    ConfigurationError: ErrorMapping(503, "configuration_error", logging.ERROR),
    DatabaseError: ErrorMapping(
        500, "server_error", logging.ERROR, public_message=GENERIC_SERVER_MESSAGE
    ),
    FileStorageError: ErrorMapping(500, "server_error", logging.ERROR),
    MarkwiseError: ErrorMapping(500, "server_error", logging.ERROR),
}


def retry_after_seconds(exc: MarkwiseError) -> Optional[int]:
    if isinstance(exc, CircuitBreakerOpenError):
        return exc.recovery_time
    return getattr(exc, "retry_after", None) or None


def _make_handler(mapping: ErrorMapping):
    async def handler(request: Request, exc: MarkwiseError) -> JSONResponse:
        logger.log(
            mapping.log_level,
            "[%s] %s on %s %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            exc.context,
        )
        details = exc.context if mapping.expose_context else None
        retry_after = retry_after_seconds(exc)
        if isinstance(exc, CircuitBreakerOpenError):
            details = {"recovery_time": exc.recovery_time}
        return error_response(
            mapping.status_code,
            mapping.error,
            mapping.public_message or exc.message,
            details,
            headers={"Retry-After": str(retry_after)} if retry_after else None,
        )

    return handler


def register_exception_handlers(app: FastAPI) -> None:
    """
    Registers one handler per entry of ERROR_MAPPINGS.

    Starlette resolves handlers along the exception's MRO, so
    LLMTimeoutError is answered by the LLMServiceError entry and any
    unlisted MarkwiseError by the base entry. Anything else is a bug: it is
    logged with its traceback and answered with a generic 500.
    """
    for exc_class, mapping in ERROR_MAPPINGS.items():
        app.add_exception_handler(exc_class, _make_handler(mapping))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), exc, exc_info=True)
        return error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Markwise API",
        description=(
            "AI teaching assistant backend: text extraction from student work, "
            "rubric-based grading, lesson plans, slide decks, a personalised tutor "
            "and classroom analytics."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # add_middleware prepends, so the last one added is outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After", "Content-Disposition"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()
