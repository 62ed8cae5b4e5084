# -*- coding: utf-8 -*-
"""Tests for request parsing, client identification and bearer token checks."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from straightshot.config import AuthConfig
from straightshot.pipeline.request_parser import client_identifier, parse_snapshot
from straightshot.services.auth import AuthVerifier, bearer_token
from straightshot.services.exceptions import AuthServiceError, InvalidBodyError, MissingFieldsError


def test_parse_snapshot_normalizes_fields() -> None:
    snapshot = parse_snapshot(b'{"year": "2014", "make": " Honda ", "priceUsd": "$9,500"}')

    assert snapshot.year == 2014
    assert snapshot.make == "Honda"
    assert snapshot.price_usd == 9500


@pytest.mark.parametrize("body", [b"", b"{oops", b'"just a string"', b"null", b"\xff\xfe"])
def test_parse_snapshot_rejects_non_objects(body) -> None:
    with pytest.raises(InvalidBodyError):
        parse_snapshot(body)


def test_parse_snapshot_requires_year_and_make() -> None:
    with pytest.raises(MissingFieldsError) as excinfo:
        parse_snapshot(b'{"year": 2014, "model": "Civic"}')

    assert excinfo.value.details["required"] == ["year", "make"]


@pytest.mark.parametrize(
    "headers,peer,expected",
    [
        ({"cf-connecting-ip": "1.1.1.1", "x-forwarded-for": "2.2.2.2"}, "3.3.3.3", "1.1.1.1"),
        ({"x-forwarded-for": " 2.2.2.2 , 10.0.0.1"}, "3.3.3.3", "2.2.2.2"),
        ({}, "3.3.3.3", "3.3.3.3"),
        ({}, None, "unknown"),
    ],
)
def test_client_identifier_precedence(headers, peer, expected) -> None:
    assert client_identifier(headers, peer) == expected


@pytest.mark.parametrize(
    "header,token",
    [("Bearer abc", "abc"), ("bearer  abc ", "abc"), ("Basic abc", None), ("Bearer ", None), (None, None)],
)
def test_bearer_token_extraction(header, token) -> None:
    assert bearer_token(header) == token


def _verifier(handler, **config) -> AuthVerifier:
    values = dict(auth_url="https://auth.example.com", auth_api_key="anon", validated_emails=("vip@example.com",))
    values.update(config)
    return AuthVerifier(
        AuthConfig(**values),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def test_active_subscription_is_validated() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["apikey"] = request.headers.get("apikey")
        return httpx.Response(200, json={
            "id": "u1",
            "email": "pro@example.com",
            "app_metadata": {"subscription_status": "active"},
        })

    status = asyncio.run(_verifier(handler).status("token-1"))

    assert status.to_dict() == {
        "authenticated": True,
        "validated": True,
        "user": {"id": "u1", "email": "pro@example.com"},
    }
    assert seen == {"path": "/auth/v1/user", "apikey": "anon"}


def test_allow_listed_email_is_validated_without_subscription() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "u3", "email": "VIP@example.com"})

    assert asyncio.run(_verifier(handler).status("token-3")).validated is True


def test_rejected_token_is_anonymous() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"msg": "invalid JWT"})

    status = asyncio.run(_verifier(handler).status("expired"))
    assert status.authenticated is False


def test_provider_failure_raises_but_header_check_degrades() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="down")

    verifier = _verifier(handler)

    with pytest.raises(AuthServiceError):
        asyncio.run(verifier.status("token-1"))
    assert asyncio.run(verifier.is_token_validated("token-1")) is False


def test_missing_token_or_auth_url_is_anonymous() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("provider should not be called")

    assert asyncio.run(_verifier(handler).status(None)).authenticated is False
    assert asyncio.run(_verifier(handler, auth_url=None).status("token-1")).authenticated is False


def test_parse_snapshot_rejects_zero_year() -> None:
    with pytest.raises(MissingFieldsError):
        parse_snapshot(b'{"year": 0, "make": "Honda"}')
