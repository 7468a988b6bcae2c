"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Any, Optional


RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)
AUTHENTICATION_STATUS_CODES = (401, 403)


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class B2ChatAPIError(ExternalServiceException):
    """
    Error returned by (or while talking to) the B2Chat API.

    Carries the HTTP status, the raw response body, the endpoint and the
    full request URL so failed extracts can be diagnosed after the fact.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        response: Any = None,
        endpoint: Optional[str] = None,
        request_url: Optional[str] = None
    ):
        self.status_code = status_code
        self.response = response
        self.endpoint = endpoint
        self.request_url = request_url
        super().__init__(
            "B2Chat API",
            message,
            {
                "status_code": status_code,
                "endpoint": endpoint,
                "request_url": request_url,
            }
        )
        # Keep the bare message; the service prefix lives in str(self)
        self.message = message

    def get_user_friendly_message(self) -> str:
        """Get a message suitable for showing to dashboard users."""
        if self.status_code == 401:
            return "B2Chat API authentication failed. Please check your username and password."
        if self.status_code == 403:
            return "Access denied to B2Chat API. Please check your account permissions."
        if self.status_code == 404:
            return "B2Chat API endpoint not found. The service may be unavailable."
        if self.status_code == 429:
            return "Too many requests to B2Chat API. Please wait before trying again."
        if self.status_code in (500, 502, 503, 504):
            return "B2Chat API server error. The service may be temporarily unavailable."
        return f"B2Chat API error ({self.status_code}): {self.message}"

    def is_retryable(self) -> bool:
        """Check if this is a temporary error that may succeed on retry."""
        return self.status_code in RETRYABLE_STATUS_CODES

    def is_authentication_error(self) -> bool:
        """Check if the credentials or permissions were rejected."""
        return self.status_code in AUTHENTICATION_STATUS_CODES
