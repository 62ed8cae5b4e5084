"""
FastAPI application factory for the StraightShot edge service.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Dict

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from straightshot.routes import analysis_router, auth_router
from straightshot.services.app_state import AppState
from straightshot.services.error_handler import setup_error_handlers

logger = logging.getLogger(__name__)

CORS_ALLOW_METHODS = "POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, Authorization"
CORS_MAX_AGE = "86400"


def cors_headers(origin: str) -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin or "*",
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
        "Vary": "Origin",
    }


class CORSEchoMiddleware(BaseHTTPMiddleware):
    """
    Echo the caller's Origin on every response and answer preflights.

    Listing pages live on the marketplace's origin, so the allowed origin
    cannot be a fixed list.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        headers = cors_headers(request.headers.get("origin", ""))
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value
        return response


def create_app(state: AppState) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    This factory pattern allows for:
    - Dependency injection of application state
    - Easier testing with fake gateways and auth verifiers
    - Clean separation of concerns
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("[STARTUP] StraightShot edge starting...")
        logger.info(f"[STARTUP] Debug mode: {state.debug_mode}")
        logger.info(f"[STARTUP] Model provider: {state.gateway.provider}")
        state.start_cleanup_task()

        yield

        # Shutdown
        state.stop_cleanup_task()
        logger.info("[SHUTDOWN] StraightShot edge shutting down...")
        logger.info(f"[SHUTDOWN] Total requests: {state.stats['total_requests']}")

    app = FastAPI(
        title="StraightShot Auto Edge",
        description="Vehicle listing analysis with rate limiting and a content-addressed cache",
        lifespan=lifespan,
    )

    # Store state in app for access by routes (set before startup so
    # TestClient works without entering the lifespan)
    app.state.app_state = state

    setup_error_handlers(app, debug=state.debug_mode)

    # Added last so it wraps error responses too
    app.add_middleware(CORSEchoMiddleware)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            **state.get_health(),
        }

    app.include_router(analysis_router)
    app.include_router(auth_router)

    return app

