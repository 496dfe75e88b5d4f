"""Request middleware for tracking and request logging."""

import uuid
import time
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ticketflow.infra.metrics import request_count, request_duration

logger = logging.getLogger("ticketflow.request")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID to all requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate or get request ID
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log request/response details and record HTTP metrics."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = getattr(request.state, "request_id", "unknown")
        endpoint = request.url.path

        start_time = time.time()
        logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": endpoint,
                "client": request.client.host if request.client else None,
            }
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": endpoint,
                    "error": str(e),
                    "duration_ms": duration_ms,
                },
                exc_info=True,
            )
            request_count.labels(method=request.method, endpoint=endpoint, status="500").inc()
            raise

        elapsed = time.time() - start_time
        duration_ms = int(elapsed * 1000)
        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": endpoint,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            }
        )
        request_count.labels(
            method=request.method, endpoint=endpoint, status=str(response.status_code)
        ).inc()
        request_duration.labels(method=request.method, endpoint=endpoint).observe(elapsed)

        response.headers["X-Response-Time-Ms"] = str(duration_ms)
        return response
