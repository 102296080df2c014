"""
Shared error handling for the price-check access layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class PriceCheckException(Exception):
    """Base exception for price-check services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 status_code: Optional[int] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(PriceCheckException):
    """Request validation errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class ConfigurationError(PriceCheckException):
    """Missing or nonsensical configuration."""

    status_code = 500

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class RateLimitError(PriceCheckException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Dict[str, Any]] = None,
                 code: str = "RATE_LIMIT_ERROR"):
        super().__init__(code, message, details)


class QuotaExceededError(RateLimitError):
    """Daily upstream call quota exhausted for a non-privileged caller."""

    def __init__(self, daily_limit: int, daily_call_count: int,
                 message: str = "Daily API call limit reached. Try again tomorrow or upgrade to premium."):
        super().__init__(
            message,
            details={"daily_limit": daily_limit, "daily_call_count": daily_call_count},
            code="QUOTA_EXCEEDED",
        )


class UpstreamError(PriceCheckException):
    """Failure reported by the upstream marketplace API."""

    status_code = 502

    def __init__(self, service: str, message: str = "Upstream service error",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ERROR", f"{service}: {message}", details)
