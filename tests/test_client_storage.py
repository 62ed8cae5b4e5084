# -*- coding: utf-8 -*-
"""Tests for persistent client storage, the free-tier counter and auth sessions."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from straightshot.client.api import EdgeClient, EdgeResponse
from straightshot.client.auth_session import Session, SessionManager
from straightshot.client.storage import AUTH_SESSION, FREE_COUNT, ClientStorage, FreeTierCounter
from straightshot.config import ClientConfig
from straightshot.services.exceptions import AuthServiceError, RequestTimeoutError, UpstreamTransportError


def test_keys_are_namespaced_and_versioned() -> None:
    storage = ClientStorage()
    assert storage.key(FREE_COUNT) == "fbco.free.count.v1"
    assert storage.key(AUTH_SESSION, version=2) == "fbco.auth.session.v2"


def test_values_survive_a_restart(tmp_path) -> None:
    path = tmp_path / "agent" / "storage.json"
    storage = ClientStorage(path)
    storage.set(storage.key(FREE_COUNT), 2)

    reopened = ClientStorage(path)
    assert reopened.get(reopened.key(FREE_COUNT)) == 2

    reopened.remove(reopened.key(FREE_COUNT))
    assert ClientStorage(path).get(reopened.key(FREE_COUNT)) is None


@pytest.mark.parametrize("contents", ["{broken", "[1, 2]"])
def test_unreadable_file_starts_empty(tmp_path, contents) -> None:
    path = tmp_path / "storage.json"
    path.write_text(contents, encoding="utf-8")

    assert ClientStorage(path).get("anything", "default") == "default"


def test_free_tier_counts_repeated_key_once(tmp_path) -> None:
    counter = FreeTierCounter(ClientStorage(tmp_path / "s.json"))

    assert counter.record("key-a") is True
    assert counter.record("key-a") is False
    assert counter.record(None) is False
    assert counter.record("key-b") is True

    restored = FreeTierCounter(ClientStorage(tmp_path / "s.json"))
    assert restored.count == 2
    assert restored.last_key == "key-b"


def test_corrupt_counter_value_reads_as_zero() -> None:
    storage = ClientStorage()
    storage.set(storage.key(FREE_COUNT), "lots")
    assert FreeTierCounter(storage).count == 0


class _FakeProvider:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.refreshed = 0

    async def refresh(self, session: Session) -> Session:
        self.refreshed += 1
        if self.error is not None:
            raise self.error
        return Session("access-2", session.refresh_token, expires_at=session.expires_at + 3600)

    async def exchange_code(self, email: str, code: str) -> Session:
        return Session("access-new", "refresh-new", expires_at=2_000_000_000.0, user={"email": email})


class _FakeStatusClient:
    def __init__(self, response: EdgeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.tokens: list[str] = []

    async def auth_status(self, token: str) -> EdgeResponse:
        self.tokens.append(token)
        if self.error is not None:
            raise self.error
        return self.response


def _sessions(clock, provider=None, edge=None, session: Session | None = None) -> SessionManager:
    manager = SessionManager(
        ClientStorage(), provider=provider, edge_client=edge,
        config=ClientConfig(auth_timeout=1.0, refresh_margin=60.0), clock=clock,
    )
    if session is not None:
        manager.save(session)
    return manager


def test_session_far_from_expiry_is_used_as_is(clock) -> None:
    provider = _FakeProvider()
    manager = _sessions(clock, provider, session=Session("access-1", "refresh-1", clock() + 3600))

    session = asyncio.run(manager.current_session())

    assert session.access_token == "access-1"
    assert provider.refreshed == 0


def test_session_near_expiry_is_refreshed_and_saved(clock) -> None:
    provider = _FakeProvider()
    manager = _sessions(clock, provider, session=Session("access-1", "refresh-1", clock() + 30))

    session = asyncio.run(manager.current_session())

    assert session.access_token == "access-2"
    assert manager.load().access_token == "access-2"


def test_failed_refresh_keeps_unexpired_session_and_drops_expired_one(clock) -> None:
    provider = _FakeProvider(error=AuthServiceError("refresh failed"))
    manager = _sessions(clock, provider, session=Session("access-1", "refresh-1", clock() + 30))
    assert asyncio.run(manager.current_session()).access_token == "access-1"

    manager.save(Session("access-1", "refresh-1", clock() - 5))
    assert asyncio.run(manager.current_session()) is None


def test_login_with_code_persists_session_and_logout_clears_it(clock) -> None:
    manager = _sessions(clock, _FakeProvider())

    session = asyncio.run(manager.login_with_code("pro@example.com", "123456"))

    assert manager.load() == session
    manager.logout()
    assert manager.load() is None


def test_malformed_stored_session_is_ignored() -> None:
    assert Session.from_dict({"access_token": "a", "expires_at": "soon"}) is None
    assert Session.from_dict("nope") is None


def test_status_check_reads_edge_answer(clock) -> None:
    edge = _FakeStatusClient(EdgeResponse(200, {"authenticated": True, "validated": True, "user": {"id": "u1"}}))
    manager = _sessions(clock, edge=edge, session=Session("access-1", "refresh-1", clock() + 3600))

    status = asyncio.run(manager.check_status())

    assert status.validated is True
    assert status.user == {"id": "u1"}
    assert edge.tokens == ["access-1"]


def test_status_check_failure_degrades_to_unvalidated(clock) -> None:
    edge = _FakeStatusClient(error=UpstreamTransportError("Edge request failed", provider="edge"))
    manager = _sessions(clock, edge=edge, session=Session("access-1", "refresh-1", clock() + 3600))

    status = asyncio.run(manager.check_status())

    assert status.authenticated is True
    assert status.validated is False


def test_status_without_session_is_anonymous(clock) -> None:
    status = asyncio.run(_sessions(clock).check_status())
    assert status.authenticated is False


def test_edge_client_posts_snapshot_with_bearer_token(snapshot) -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(429, json={"error": "Rate limited", "retry_after_seconds": 7},
                              headers={"Retry-After": "7", "X-Cache": "MISS"})

    async def scenario():
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = EdgeClient("http://edge.test/", http_client=http)
        try:
            return await client.analyze(snapshot, "access-1")
        finally:
            await client.aclose()

    response = asyncio.run(scenario())

    assert seen["auth"] == "Bearer access-1"
    assert seen["body"]["make"] == "Honda"
    assert response.status_code == 429
    assert response.retry_after == 7.0
    assert response.cache_status == "MISS"


@pytest.mark.parametrize(
    "exc,expected",
    [(httpx.ReadTimeout("slow"), RequestTimeoutError), (httpx.ConnectError("down"), UpstreamTransportError)],
)
def test_edge_client_maps_transport_failures(snapshot, exc, expected) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    async def scenario():
        client = EdgeClient("http://edge.test", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        try:
            await client.analyze(snapshot)
        finally:
            await client.aclose()

    with pytest.raises(expected):
        asyncio.run(scenario())
