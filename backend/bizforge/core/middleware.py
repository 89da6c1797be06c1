"""
BizForge - HTTP Middleware
Request/response logging, timing, and request context
"""

import time
from typing import Callable, Set
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from starlette.types import ASGIApp

from bizforge.core.logging_config import (
    logger,
    set_request_id,
    set_job_id,
    generate_request_id,
)


# Paths that should skip detailed logging (health checks, docs)
SKIP_LOGGING_PATHS: Set[str] = {
    "/",
    "/api/v1/health",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}

JOB_PATH_MARKER = "/orchestrations/"


def should_skip_logging(path: str) -> bool:
    """Check if path should skip detailed logging"""
    return path in SKIP_LOGGING_PATHS


def job_id_from_path(path: str) -> str:
    """Pull the job id out of /orchestrations/{job_id}[/...] paths"""
    if JOB_PATH_MARKER not in path:
        return ""
    return path.split(JOB_PATH_MARKER, 1)[1].split("/")[0]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    - Generates and tracks request IDs for correlation
    - Sets request/job context variables for downstream logging
    - Adds X-Request-ID and X-Response-Time headers
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        path = request.url.path
        job_id = job_id_from_path(path)
        if job_id:
            set_job_id(job_id)

        skip_logging = should_skip_logging(path)
        start_time = time.perf_counter()

        if not skip_logging:
            logger.debug(
                f"-> {request.method} {path}",
                extra={
                    "event_type": "http_request_start",
                    "http_method": request.method,
                    "http_path": path,
                    "client_ip": request.client.host if request.client else "unknown",
                }
            )

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not skip_logging:
                if response.status_code >= 500:
                    logger.error(
                        f"<- {request.method} {path} - {response.status_code} ({duration_ms:.2f}ms)",
                        extra={"event_type": "http_request_complete", "http_status": response.status_code}
                    )
                elif response.status_code >= 400:
                    logger.warning(
                        f"<- {request.method} {path} - {response.status_code} ({duration_ms:.2f}ms)",
                        extra={"event_type": "http_request_complete", "http_status": response.status_code}
                    )
                else:
                    logger.log_request(request.method, path, response.status_code, duration_ms)

                if duration_ms > self.slow_request_ms:
                    logger.log_performance(
                        f"{request.method} {path}", duration_ms, threshold_ms=self.slow_request_ms
                    )

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"x {request.method} {path} - Exception ({duration_ms:.2f}ms): {type(exc).__name__}",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": request.method,
                    "http_path": path,
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                }
            )
            raise

        finally:
            set_request_id("")
            set_job_id("")


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to limit request body size (business requirements are small JSON documents)
    """

    def __init__(self, app: ASGIApp, max_size: int = 2 * 1024 * 1024):
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")

        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                f"Request body too large: {content_length} bytes (max: {self.max_size})",
                extra={
                    "event_type": "request_too_large",
                    "content_length": int(content_length),
                    "http_path": request.url.path,
                }
            )
            return JSONResponse(
                status_code=413,
                content={"detail": f"Request body too large. Maximum size is {self.max_size // 1024} KB"}
            )

        return await call_next(request)


__all__ = [
    "RequestLoggingMiddleware",
    "RequestSizeLimitMiddleware",
    "should_skip_logging",
    "job_id_from_path",
    "SKIP_LOGGING_PATHS",
]
