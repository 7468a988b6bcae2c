"""
Shared API Middleware
======================

Common middleware and exception handlers for the FastAPI application.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from chatpulse.core import B2ChatAPIError, ValidationException
from chatpulse.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Adds correlation ID to requests for tracing.

    An incoming X-Correlation-ID is reused, otherwise one is generated.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER, str(uuid.uuid4()))

        # Store in request state for access in endpoints
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Access log for the API.

    One line per finished request with status and latency. Health probes are
    logged at DEBUG so load balancer polling does not flood the log.
    """

    quiet_paths = ("/health",)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        context = {
            "correlation_id": _correlation_id(request),
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "client": request.client.host if request.client else None,
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={**context, "error": str(e), "response_time_ms": _elapsed_ms(started)}
            )
            raise

        elapsed = _elapsed_ms(started)
        response.headers["X-Response-Time"] = f"{elapsed / 1000:.3f}s"
        level = logging.DEBUG if request.url.path in self.quiet_paths else logging.INFO
        logger.log(
            level,
            f"{request.method} {request.url.path} {response.status_code}",
            extra={**context, "status_code": response.status_code, "response_time_ms": elapsed}
        )
        return response


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def b2chat_error_handler(request: Request, exc: B2ChatAPIError) -> JSONResponse:
    """
    Upstream B2Chat failures.

    502 for errors returned by B2Chat, 503 when the error is temporary.
    """
    correlation_id = _correlation_id(request)
    status_code = 503 if exc.is_retryable() else 502

    logger.error(
        "B2Chat API error",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "upstream_status": exc.status_code,
            "endpoint": exc.endpoint,
            "error_message": exc.message
        }
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.get_user_friendly_message(),
            "upstream_status": exc.status_code,
            "retryable": exc.is_retryable(),
            "correlation_id": correlation_id,
        }
    )


async def validation_error_handler(request: Request, exc: ValidationException) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "detail": exc.message,
            "errors": exc.details,
            "correlation_id": _correlation_id(request),
        }
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    correlation_id = _correlation_id(request)

    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )

    # Don't expose internal details in production
    is_dev = getattr(getattr(request.app.state, "settings", None), "environment", None) == "development"

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "correlation_id": correlation_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "debug_info": str(exc) if is_dev else None
        }
    )
