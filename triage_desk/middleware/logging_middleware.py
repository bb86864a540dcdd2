"""
Logging Middleware - Request/Response logging
"""
import time
from typing import Callable
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)

QUIET_PATHS = ("/api/v1/health",)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every reviewer/API request with its outcome and duration.

    Adds `X-Request-ID` and `X-Process-Time` (ms) response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        path = request.url.path
        if path.startswith(QUIET_PATHS):
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or uuid4().hex[:12]
        method = request.method
        start_time = time.perf_counter()

        logger.info(f"[{request_id}] -> {method} {path}")

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.error(
                f"[{request_id}] x {method} {path} ERROR ({duration_ms}ms): {e}",
                exc_info=True
            )
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        log = logger.warning if response.status_code >= 400 else logger.info
        log(f"[{request_id}] <- {method} {path} {response.status_code} ({duration_ms}ms)")

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)
        return response
