"""
HTTP client for the edge service, used by the page agent.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from straightshot.config import CLIENT
from straightshot.models import VehicleSnapshot
from straightshot.services.exceptions import RequestTimeoutError, UpstreamTransportError

logger = logging.getLogger(__name__)


@dataclass
class EdgeResponse:
    status_code: int
    payload: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def retry_after(self) -> Optional[float]:
        """Server retry hint in seconds, from the header or the body."""
        raw = self.headers.get("retry-after")
        if raw is None and isinstance(self.payload, dict):
            raw = self.payload.get("retry_after_seconds")
        try:
            return max(0.0, float(raw)) if raw is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def cache_status(self) -> Optional[str]:
        return self.headers.get("x-cache")

    @property
    def user_validated(self) -> bool:
        return self.headers.get("x-user-validated", "").lower() == "true"


class EdgeClient:
    """
    Usage:
        client = EdgeClient("https://edge.example.com")
        response = await client.analyze(snapshot, token)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or CLIENT.edge_url).rstrip("/")
        self.timeout = timeout or CLIENT.request_timeout
        # Shared HTTP client for connection pooling
        self.http_client = http_client

    async def _post(
        self,
        path: str,
        body: Optional[Dict[str, Any]],
        token: Optional[str],
        timeout: float,
    ) -> EdgeResponse:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            if self.http_client:
                response = await self.http_client.post(url, json=body, headers=headers, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("edge", timeout=timeout, cause=e)
        except httpx.HTTPError as e:
            raise UpstreamTransportError("Edge request failed", provider="edge", cause=e)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        return EdgeResponse(
            status_code=response.status_code,
            payload=payload,
            headers={k.lower(): v for k, v in response.headers.items()},
        )

    async def analyze(self, snapshot: VehicleSnapshot, token: Optional[str] = None) -> EdgeResponse:
        response = await self._post("/analyze", snapshot.to_payload(), token, self.timeout)
        logger.info(f"[EDGE] /analyze -> {response.status_code} ({response.cache_status or '-'})")
        return response

    async def auth_status(self, token: str, timeout: Optional[float] = None) -> EdgeResponse:
        return await self._post("/auth/status", None, token, timeout or CLIENT.auth_timeout)

    async def aclose(self) -> None:
        if self.http_client:
            await self.http_client.aclose()
