# -*- coding: utf-8 -*-
"""Shared pytest fixtures for the edge service and the page agent."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fastapi.testclient import TestClient

from straightshot.config import CacheConfig, RateLimitConfig
from straightshot.models import VehicleSnapshot
from straightshot.services.app_factory import create_app
from straightshot.services.app_state import AppState
from straightshot.services.auth import AuthStatus
from straightshot.services.rate_limiter import RateLimiter
from straightshot.services.response_cache import ResponseCache


class FakeClock:
    """Manually advanced clock. Starts well away from zero."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def ms(self) -> int:
        return int(self.now * 1000)


class FakeGateway:
    """Stands in for ModelGateway; records calls and can be paused or failed."""

    provider = "openai"

    def __init__(self, payload: dict | None = None, error: Exception | None = None) -> None:
        self.payload = payload or {}
        self.error = error
        self.calls: list[VehicleSnapshot] = []
        self.gate: asyncio.Event | None = None

    def ensure_configured(self) -> None:
        return None

    async def analyze(self, snapshot: VehicleSnapshot) -> dict:
        self.calls.append(snapshot)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return dict(self.payload)

    def get_stats(self) -> dict:
        return {"provider": self.provider, "calls": len(self.calls)}


class FakeAuthVerifier:
    """Token "good" is a validated subscriber, "free" a signed-in free user."""

    async def status(self, token: str | None) -> AuthStatus:
        if token == "good":
            return AuthStatus(True, True, {"id": "u1", "email": "pro@example.com"})
        if token == "free":
            return AuthStatus(True, False, {"id": "u2", "email": "free@example.com"})
        return AuthStatus()

    async def is_token_validated(self, token: str | None) -> bool:
        return (await self.status(token)).validated


@pytest.fixture
def snapshot_data() -> dict[str, Any]:
    return {
        "url": "https://www.facebook.com/marketplace/item/123456789012/?ref=search&tracking=abc",
        "source_text": "2014 Honda Civic EX Sedan 4D",
        "year": "2014",
        "make": "Honda",
        "model": "Civic",
        "trim": "EX",
        "price_usd": "$9,500",
        "mileage_miles": "112,000",
        "title_status": "Clean",
        "transmission": "Automatic",
        "seller_description": "One owner, timing belt done at 100k. Minor scratch on rear bumper.",
        "about_items": ["Driven 112,000 miles", "Automatic transmission"],
    }


@pytest.fixture
def snapshot(snapshot_data) -> VehicleSnapshot:
    return VehicleSnapshot.from_dict(snapshot_data)


@pytest.fixture
def model_payload() -> dict[str, Any]:
    return {
        "summary": "Well-kept Civic with a documented timing service.",
        "final_verdict": "Good deal if the inspection is clean.",
        "overall_score": 74,
        "confidence": 0.8,
        "market_value_estimate": "$9,000 - $10,500",
        "price_opinion": "Fair for the mileage.",
        "upsides": ["One owner", "Timing belt done"],
        "common_issues": [
            {"issue": "AC compressor clutch", "severity": "medium", "estimated_cost": "$300-$900"},
        ],
        "buyer_questions": ["Do you have service records?"],
        "tags": ["Commuter", "Reliable"],
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway(model_payload) -> FakeGateway:
    return FakeGateway(model_payload)


@pytest.fixture
def app_state(clock, gateway) -> AppState:
    return AppState(
        rate_limiter=RateLimiter(RateLimitConfig(5000, 3_600_000, 30), clock=clock.ms),
        cache=ResponseCache(CacheConfig(86400, "v2", 100), clock=clock),
        gateway=gateway,
        auth=FakeAuthVerifier(),
    )


@pytest.fixture
def client(app_state) -> TestClient:
    return TestClient(create_app(app_state))
