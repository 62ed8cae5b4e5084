"""
Custom Exception Hierarchy for StraightShot Auto

This module provides a structured exception hierarchy shared by the edge
service and the page agent.

Usage:
    from straightshot.services.exceptions import (
        ProxyException,
        ValidationError,
        UpstreamTransportError,
    )

    try:
        raw = await gateway.analyze(snapshot)
    except UpstreamFormatError as e:
        logger.error(f"Model drift: {e}")
        raise
"""

from typing import Optional, Dict, Any, List


class ProxyException(Exception):
    """
    Base exception for all StraightShot errors.

    All custom exceptions should inherit from this class to enable
    unified error handling throughout the application.
    """

    def __init__(
        self,
        message: str,
        code: str = "PROXY_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# ============================================================
# Validation Errors
# ============================================================

class ValidationError(ProxyException):
    """Base class for validation errors. Surfaced as 4xx, never retried."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: str = "VALIDATION_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, code, details, cause)


class InvalidBodyError(ValidationError):
    """Request body is not a JSON object."""

    def __init__(self, cause: Optional[Exception] = None):
        super().__init__(
            message="Invalid JSON body",
            code="INVALID_BODY",
            cause=cause,
        )


class MissingFieldsError(ValidationError):
    """Snapshot lacks the minimum identity fields."""

    def __init__(self, required: List[str]):
        super().__init__(
            message="Missing required fields",
            code="MISSING_FIELDS",
            details={"required": list(required)},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "required": self.details["required"],
        }


# ============================================================
# Rate Limiting Errors
# ============================================================

class RateLimitError(ProxyException):
    """Rate limit exceeded. Carries a retry hint in seconds."""

    def __init__(
        self,
        service: str,
        retry_after: Optional[int] = None,
    ):
        details = {"service": service}
        if retry_after:
            details["retry_after_seconds"] = retry_after
        super().__init__(
            message="Rate limited",
            code="RATE_LIMIT_EXCEEDED",
            details=details,
        )
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "retry_after_seconds": self.retry_after,
        }


# ============================================================
# External Service Errors
# ============================================================

class ExternalServiceError(ProxyException):
    """Base class for external service errors."""

    def __init__(
        self,
        service: str,
        message: str,
        code: str = "EXTERNAL_SERVICE_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        details = details or {}
        details["service"] = service
        super().__init__(message, code, details, cause)


class UpstreamTransportError(ExternalServiceError):
    """Network, HTTP or timeout failure talking to the model provider."""

    def __init__(
        self,
        message: str = "Upstream model request failed",
        provider: str = "openai",
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        details = {}
        if status_code:
            details["status"] = status_code
        if body:
            details["body"] = body[:2000]
        super().__init__(
            service=provider,
            message=message,
            code="UPSTREAM_TRANSPORT_ERROR",
            details=details,
            cause=cause,
        )


class RequestTimeoutError(ExternalServiceError):
    """A call exceeded its deadline and was cancelled."""

    def __init__(
        self,
        service: str = "edge",
        timeout: Optional[float] = None,
        cause: Optional[Exception] = None,
    ):
        details = {}
        if timeout is not None:
            details["timeout_seconds"] = timeout
        super().__init__(
            service=service,
            message="timeout",
            code="REQUEST_TIMEOUT",
            details=details,
            cause=cause,
        )


class UpstreamFormatError(ExternalServiceError):
    """Model returned non-JSON or schema-violating content."""

    def __init__(
        self,
        reason: str = "Failed to parse model response",
        provider: str = "openai",
        raw: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        details = {}
        if raw is not None:
            details["raw"] = raw[:2000]
        super().__init__(
            service=provider,
            message=reason,
            code="UPSTREAM_FORMAT_ERROR",
            details=details,
            cause=cause,
        )


class AuthServiceError(ExternalServiceError):
    """Identity provider could not be reached or rejected the request."""

    def __init__(
        self,
        message: str = "Auth service request failed",
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        details = {}
        if status_code:
            details["status"] = status_code
        super().__init__(
            service="auth",
            message=message,
            code="AUTH_SERVICE_ERROR",
            details=details,
            cause=cause,
        )


# ============================================================
# Analysis Errors (client-side classification)
# ============================================================

class AnalysisError(ProxyException):
    """Base class for analysis-related errors."""

    def __init__(
        self,
        message: str,
        code: str = "ANALYSIS_ERROR",
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, code, details, cause)


class IncompleteAnalysisError(AnalysisError):
    """Transport succeeded but the narrative fields are blank or sentinel."""

    def __init__(self, missing_fields: List[str]):
        super().__init__(
            message="incomplete response",
            code="INCOMPLETE_ANALYSIS",
            details={"missing_fields": list(missing_fields)},
        )


# ============================================================
# Configuration Errors
# ============================================================

class ConfigurationError(ProxyException):
    """Configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            details=details,
        )


class MissingAPIKeyError(ConfigurationError):
    """Required API key is missing."""

    def __init__(self, service: str):
        super().__init__(
            message=f"Server missing {service.upper()}_API_KEY",
            config_key=f"{service.upper()}_API_KEY",
        )
        self.code = "MISSING_API_KEY"
