"""
Auth session handling for the page agent.

Token issuance and refresh belong to an external identity provider; this
module only keeps the persisted session current and asks the edge whether
it belongs to a validated (subscribed) user. Nothing here ever blocks an
analysis: every failure degrades to "not validated".
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

from straightshot.config import ClientConfig, CLIENT
from straightshot.services.auth import AuthStatus
from straightshot.services.exceptions import ExternalServiceError
from straightshot.client.storage import ClientStorage, AUTH_SESSION

logger = logging.getLogger(__name__)


@dataclass
class Session:
    access_token: str
    refresh_token: str
    expires_at: float
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = field(default=None)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Session"]:
        """Rebuild a stored session; anything malformed is treated as no session."""
        if not isinstance(data, dict):
            return None
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        try:
            expires_at = float(data.get("expires_at"))
        except (TypeError, ValueError):
            return None
        if not access_token or not refresh_token:
            return None
        user = data.get("user")
        return cls(
            access_token=str(access_token),
            refresh_token=str(refresh_token),
            expires_at=expires_at,
            token_type=str(data.get("token_type") or "bearer"),
            user=user if isinstance(user, dict) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "token_type": self.token_type,
            "user": self.user,
        }

    def expires_within(self, seconds: float, now: float) -> bool:
        return self.expires_at - now <= seconds

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class AuthProvider(Protocol):
    """External identity provider. Failures raise ExternalServiceError."""

    async def refresh(self, session: Session) -> Session:
        ...

    async def exchange_code(self, email: str, code: str) -> Session:
        ...


class SessionManager:
    """
    Usage:
        sessions = SessionManager(storage, provider, edge_client)
        session = await sessions.current_session()
        status = await sessions.check_status(session)
    """

    def __init__(
        self,
        storage: ClientStorage,
        provider: Optional[AuthProvider] = None,
        edge_client=None,
        config: Optional[ClientConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.provider = provider
        self.edge_client = edge_client
        self.config = config or CLIENT
        self._clock = clock
        self._key = storage.key(AUTH_SESSION)

    def load(self) -> Optional[Session]:
        return Session.from_dict(self.storage.get(self._key))

    def save(self, session: Session) -> None:
        self.storage.set(self._key, session.to_dict())

    def logout(self) -> None:
        self.storage.remove(self._key)
        logger.info("[AUTH] Session cleared")

    async def current_session(self) -> Optional[Session]:
        """Stored session, refreshed first if it is about to expire."""
        session = self.load()
        if session is None:
            return None

        now = self._clock()
        if not session.expires_within(self.config.refresh_margin, now):
            return session
        if self.provider is None:
            return None if session.is_expired(now) else session

        try:
            refreshed = await asyncio.wait_for(
                self.provider.refresh(session), timeout=self.config.auth_timeout
            )
        except (asyncio.TimeoutError, ExternalServiceError) as e:
            logger.warning(f"[AUTH] Token refresh failed: {e}")
            return None if session.is_expired(now) else session

        self.save(refreshed)
        logger.info("[AUTH] Token refreshed")
        return refreshed

    async def login_with_code(self, email: str, code: str) -> Session:
        """Exchange a one-time code for a session and persist it."""
        if self.provider is None:
            raise ExternalServiceError("auth", "No auth provider configured", code="AUTH_NOT_CONFIGURED")
        session = await asyncio.wait_for(
            self.provider.exchange_code(email, code), timeout=self.config.auth_timeout
        )
        self.save(session)
        logger.info(f"[AUTH] Signed in as {email}")
        return session

    async def check_status(self, session: Optional[Session] = None) -> AuthStatus:
        """Ask the edge whether the session is validated. Never raises."""
        if session is None:
            session = await self.current_session()
        if session is None or self.edge_client is None:
            return AuthStatus()

        try:
            response = await asyncio.wait_for(
                self.edge_client.auth_status(session.access_token),
                timeout=self.config.auth_timeout,
            )
        except (asyncio.TimeoutError, ExternalServiceError) as e:
            logger.warning(f"[AUTH] Status check failed: {e}")
            return AuthStatus(authenticated=True, validated=False, user=session.user)

        payload = response.payload if isinstance(response.payload, dict) else {}
        if not response.ok:
            logger.warning(f"[AUTH] Status check returned {response.status_code}")
            return AuthStatus(authenticated=True, validated=False, user=session.user)

        return AuthStatus(
            authenticated=bool(payload.get("authenticated")),
            validated=bool(payload.get("validated")),
            user=payload.get("user") or session.user,
        )
