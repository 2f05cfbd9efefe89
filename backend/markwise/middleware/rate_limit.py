"""
Markwise Backend — Rate Limiting Middleware
============================================

What:  Per-client sliding window limit on the AI-backed endpoints.
Why:   Every call to those endpoints spends provider tokens; a runaway
       client must not exhaust the quota for a whole school.
How:   Timestamps of recent requests are kept per client key. On each
       limited request, timestamps older than the window are dropped; when
       RATE_LIMIT_REQUESTS remain, the request is rejected with 429 and a
       Retry-After header.

Scope:
    Only paths starting with one of RATE_LIMITED_PREFIXES are counted.
    Uploads, file downloads, analytics and /health are never limited.

Client key:
    The first X-Forwarded-For hop when present (deployments sit behind a
    proxy), otherwise the socket peer address.

State is in memory, so limits are per process. Multi-worker deployments
get one window per worker.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from markwise.config import settings
from markwise.exceptions import RateLimitExceededError
from markwise.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

# Inactive clients are purged every this many limited requests
CLEANUP_EVERY = 1000


def client_key(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        prefixes: Optional[Sequence[str]] = None,
    ):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self.prefixes = tuple(prefixes if prefixes is not None else settings.rate_limited_prefix_list)
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    def is_limited_path(self, path: str) -> bool:
        return path.startswith(self.prefixes)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method == "OPTIONS" or not self.is_limited_path(request.url.path):
            return await call_next(request)

        key = client_key(request)
        now = time.time()
        window_start = now - self.window_seconds

        recent = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = recent

        if len(recent) >= self.max_requests:
            retry_after = int(recent[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for %s on %s: %d requests in %ds window",
                key,
                request.url.path,
                len(recent),
                self.window_seconds,
            )
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": exc.context,
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(exc.retry_after)},
            )

        recent.append(now)
        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup_inactive(window_start)

        return await call_next(request)

    def _cleanup_inactive(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= window_start
        ]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))
