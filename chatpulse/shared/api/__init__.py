"""Shared HTTP middleware and exception handlers."""

from chatpulse.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    b2chat_error_handler,
    global_exception_handler,
    validation_error_handler,
)

__all__ = [
    "CorrelationIDMiddleware",
    "LoggingMiddleware",
    "b2chat_error_handler",
    "global_exception_handler",
    "validation_error_handler",
]
