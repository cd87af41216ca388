"""Fixtures for integration tests.

This module provides fixtures for:
- A fake state, LGA and sales service behind an httpx mock transport
- FastAPI test client with a fresh session registry
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from tests.fakes import FakeClock
from unitmap import dependencies
from unitmap.dependencies import SessionRegistry, get_session_registry
from unitmap.main import app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@pytest.fixture
async def upstream_client(fake_api) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client the app uses to reach the fake services."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler)) as client:
        dependencies.set_http_client(client)
        yield client
        dependencies.set_http_client(None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock) -> SessionRegistry:
    return SessionRegistry(ttl_seconds=60, clock=clock)


@pytest.fixture
async def test_client(upstream_client, registry) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with mocked dependencies."""
    app.dependency_overrides[get_session_registry] = lambda: registry

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def session_id(test_client) -> str:
    """ID of a freshly created map session."""
    response = await test_client.post("/api/v1/map/sessions")
    return response.json()["session_id"]
