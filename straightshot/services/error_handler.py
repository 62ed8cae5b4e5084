"""
Error Handling for the StraightShot edge service

This module provides centralized error handling for the FastAPI application:
exception-to-status mapping, logging, and the JSON error bodies clients
depend on.

Usage:
    from straightshot.services.error_handler import setup_error_handlers

    app = FastAPI()
    setup_error_handlers(app)
"""

import logging
import traceback
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from straightshot.services.exceptions import (
    ProxyException,
    ExternalServiceError,
    ValidationError,
    RateLimitError,
    ConfigurationError,
    AnalysisError,
)

logger = logging.getLogger(__name__)

HTTP_ERROR_MESSAGES = {
    404: "Not found",
    405: "Method not allowed",
}


# ============================================================
# Error Response Helpers
# ============================================================

def get_status_code(exc: ProxyException) -> int:
    """Determine HTTP status code for exception."""
    if isinstance(exc, ValidationError):
        return 400
    elif isinstance(exc, RateLimitError):
        return 429
    elif isinstance(exc, ConfigurationError):
        return 503
    elif isinstance(exc, ExternalServiceError):
        return 502
    elif isinstance(exc, AnalysisError):
        return 422
    return 500


def create_error_response(exc: ProxyException, status_code: int) -> JSONResponse:
    """Create the JSON error response for a known exception."""
    headers = None
    if isinstance(exc, RateLimitError) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


def log_error(exc: ProxyException, status_code: int) -> None:
    """Log error with appropriate severity."""
    if status_code >= 500:
        logger.error(f"[{exc.code}] {exc}", extra={"details": exc.details})
    elif status_code >= 400:
        logger.warning(f"[{exc.code}] {exc.message}", extra={"details": exc.details})
    else:
        logger.info(f"[{exc.code}] {exc.message}")


def internal_error_response(exc: Exception, debug: bool = False) -> JSONResponse:
    content = {
        "error": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
    }
    if debug:
        content["debug"] = {
            "exception": type(exc).__name__,
            "message": str(exc),
            "traceback": traceback.format_exc(),
        }
    return JSONResponse(status_code=500, content=content)


# ============================================================
# Exception Handlers
# ============================================================

async def handle_proxy_exception(request: Request, exc: ProxyException) -> JSONResponse:
    """Handle ProxyException and its subclasses."""
    status_code = get_status_code(exc)
    log_error(exc, status_code)
    return create_error_response(exc, status_code)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (unknown path, wrong method) in the service's body shape."""
    message = HTTP_ERROR_MESSAGES.get(exc.status_code) or str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"[REQUEST] Validation failed on {request.url.path}")
    return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})


# ============================================================
# Error Handling Middleware
# ============================================================

class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches exceptions escaping the routers.

    This middleware:
    - Catches all ProxyException subclasses
    - Logs errors with appropriate severity
    - Converts anything else into a 500 INTERNAL_ERROR body
    """

    def __init__(self, app: FastAPI, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable):
        try:
            return await call_next(request)

        except ProxyException as exc:
            return await handle_proxy_exception(request, exc)

        except Exception as exc:
            logger.error(
                f"Unhandled exception in {request.url.path}: {type(exc).__name__}: {exc}",
                exc_info=True,
            )
            return internal_error_response(exc, self.debug)


# ============================================================
# Setup Function
# ============================================================

def setup_error_handlers(app: FastAPI, debug: bool = False, middleware: bool = True):
    """
    Configure error handlers for the FastAPI application.

    Args:
        app: The FastAPI application instance
        debug: If True, include detailed error info in 500 responses
        middleware: Also install ErrorHandlingMiddleware as a last resort
    """

    if middleware:
        app.add_middleware(ErrorHandlingMiddleware, debug=debug)

    app.add_exception_handler(ProxyException, handle_proxy_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)

    logger.info(f"[ERROR HANDLER] Configured (debug={debug})")
