"""
Services Package

Edge service building blocks: state, caching, rate limiting, auth and
error handling.
"""

from .error_handler import setup_error_handlers
from .exceptions import (
    ProxyException,
    ValidationError,
    InvalidBodyError,
    MissingFieldsError,
    RateLimitError,
    ExternalServiceError,
    UpstreamTransportError,
    RequestTimeoutError,
    UpstreamFormatError,
    AuthServiceError,
    AnalysisError,
    IncompleteAnalysisError,
    ConfigurationError,
    MissingAPIKeyError,
)

__all__ = [
    # Error handling
    'setup_error_handlers',
    'ProxyException',
    'ValidationError',
    'InvalidBodyError',
    'MissingFieldsError',
    'RateLimitError',
    'ExternalServiceError',
    'UpstreamTransportError',
    'RequestTimeoutError',
    'UpstreamFormatError',
    'AuthServiceError',
    'AnalysisError',
    'IncompleteAnalysisError',
    'ConfigurationError',
    'MissingAPIKeyError',
]
