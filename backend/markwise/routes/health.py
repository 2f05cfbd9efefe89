"""
Health check for load balancers and monitoring.

Status levels:
    healthy:   database reachable and the AI provider available
    degraded:  database reachable, AI provider unavailable, unconfigured
               or behind an open circuit (HTTP 200)
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from markwise import __version__
from markwise.database import engine
from markwise.schemas.common import HealthResponse
from markwise.services.llm import get_llm_service
from markwise.services.llm_base import LLMService
from markwise.services.resilience import CircuitBreaker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def llm_status(llm: LLMService) -> str:
    if not llm.is_configured:
        return "not_configured"
    if llm.circuit_breaker.state == CircuitBreaker.OPEN:
        return "circuit_open"
    try:
        return "available" if await llm.health_check() else "unavailable"
    except Exception as e:
        logger.warning("Health check: %s unreachable: %s", llm.provider_name, str(e))
        return "unavailable"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
    summary="Service health check",
)
async def health_check(llm: LLMService = Depends(get_llm_service)):
    db_status = "connected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", str(e))

    ai_status = await llm_status(llm)
    if db_status != "connected":
        overall = "unhealthy"
    elif ai_status != "available":
        overall = "degraded"
    else:
        overall = "healthy"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        llm_provider=llm.provider_name,
        llm=ai_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
