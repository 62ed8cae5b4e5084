"""
Bearer token verification for the edge service.

Resolves an access token against the identity provider's user endpoint and
decides whether the user is validated (an active subscriber). Used by
POST /auth/status and to stamp X-User-Validated on analysis responses.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from straightshot.config import AuthConfig, AUTH
from straightshot.services.exceptions import AuthServiceError

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTION_STATES = ("active", "trialing")


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an Authorization header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@dataclass
class AuthStatus:
    authenticated: bool = False
    validated: bool = False
    user: Optional[Dict[str, Any]] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "authenticated": self.authenticated,
            "validated": self.validated,
        }
        if self.user is not None:
            result["user"] = self.user
        return result


class AuthVerifier:
    """
    Usage:
        verifier = AuthVerifier()
        status = await verifier.status(token)
    """

    def __init__(
        self,
        config: Optional[AuthConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or AUTH
        # Shared HTTP client for connection pooling
        self.http_client = http_client

    def is_validated(self, user: Dict[str, Any]) -> bool:
        email = str(user.get("email") or "").lower()
        if email and email in self.config.validated_emails:
            return True
        metadata = user.get("app_metadata") or {}
        state = str(metadata.get("subscription_status") or "").lower()
        return state in ACTIVE_SUBSCRIPTION_STATES

    async def _fetch_user(self, token: str) -> Optional[Dict[str, Any]]:
        url = f"{self.config.auth_url.rstrip('/')}/auth/v1/user"
        headers = {"Authorization": f"Bearer {token}"}
        if self.config.auth_api_key:
            headers["apikey"] = self.config.auth_api_key

        try:
            if self.http_client:
                response = await self.http_client.get(url, headers=headers, timeout=self.config.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                    response = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise AuthServiceError("Auth service timed out", cause=e)
        except httpx.HTTPError as e:
            raise AuthServiceError(cause=e)

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            raise AuthServiceError(status_code=response.status_code)

        try:
            user = response.json()
        except ValueError as e:
            raise AuthServiceError("Auth service returned invalid JSON", cause=e)
        return user if isinstance(user, dict) else None

    async def status(self, token: Optional[str]) -> AuthStatus:
        """Resolve a bearer token. Raises AuthServiceError if the provider fails."""
        if not token:
            return AuthStatus()
        if not self.config.auth_url:
            logger.debug("[AUTH] No AUTH_URL configured, treating token as anonymous")
            return AuthStatus()

        user = await self._fetch_user(token)
        if user is None:
            return AuthStatus()

        validated = self.is_validated(user)
        logger.info(f"[AUTH] Resolved user {user.get('id', '?')} (validated={validated})")
        return AuthStatus(
            authenticated=True,
            validated=validated,
            user={"id": user.get("id"), "email": user.get("email")},
        )

    async def is_token_validated(self, token: Optional[str]) -> bool:
        """Best-effort check for response headers; provider failures count as False."""
        try:
            return (await self.status(token)).validated
        except AuthServiceError as e:
            logger.warning(f"[AUTH] Validation check failed: {e}")
            return False
