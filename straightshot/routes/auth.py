"""
Auth status route.

POST /auth/status resolves the caller's bearer token and reports whether
the user is authenticated and validated (an active subscriber).
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from straightshot.services.app_state import get_app_state_from_request
from straightshot.services.auth import bearer_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/auth/status")
async def auth_status(request: Request) -> JSONResponse:
    app_state = get_app_state_from_request(request)
    token = bearer_token(request.headers.get("authorization"))
    status = await app_state.auth.status(token)
    return JSONResponse(content=status.to_dict(), headers={"Cache-Control": "no-store"})
