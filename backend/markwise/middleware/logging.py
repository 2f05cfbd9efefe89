"""
Access logging middleware.

One line per request on the "markwise.access" logger:

    POST /api/grade_submission 200 3456.8ms [3f2a9c1d] from 10.0.0.7

Request bodies are never logged: submissions and chat messages are
student data. /health is skipped to keep probe traffic out of the log.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from markwise.middleware.request_id import request_id_var

access_logger = logging.getLogger("markwise.access")

QUIET_PATHS = frozenset({"/health"})


def level_for_status(status_code: int) -> int:
    """5xx logs at ERROR, 4xx at WARNING, the rest at INFO."""
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        began = time.perf_counter()
        response = await call_next(request)
        elapsed = round((time.perf_counter() - began) * 1000, 2)

        fields = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed,
            "client_ip": request.client.host if request.client else "unknown",
        }
        access_logger.log(
            level_for_status(response.status_code),
            "%(method)s %(path)s %(status)d %(duration_ms).1fms [%(request_id)s] from %(client_ip)s",
            fields,
            extra=fields,
        )
        return response
