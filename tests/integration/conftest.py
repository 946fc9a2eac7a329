"""Integration test fixtures: the HTTP API over a real database."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from payout_engine.api.app import create_app
from payout_engine.config import Settings
from payout_engine.database import Database
from payout_engine.providers import SandboxSettlementProvider

from ..conftest import WEBHOOK_SECRET, make_settings

API = "/api/v1"


def vendor_payload(**overrides: Any) -> dict[str, Any]:
    """Request body for POST /vendors."""
    payload = {
        "name": "Acme Supplies",
        "email": "billing@acme.example",
        "phone": "+1 415 555 0100",
        "address": "1 Market St, San Francisco",
        "bankAccount": {
            "accountNumber": "123456789012",
            "routingNumber": "021000021",
            "bankName": "Chase Bank",
            "accountHolder": "Acme Supplies LLC",
        },
    }
    payload.update(overrides)
    return payload


async def _client_for(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.engine.runner.shutdown()


@pytest.fixture
def app(
    settings: Settings,
    database: Database,
    provider: SandboxSettlementProvider,
) -> FastAPI:
    """Application wired to the test database and sandbox provider."""
    return create_app(settings, database=database, provider=provider)


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the application."""
    async for c in _client_for(app):
        yield c


@pytest.fixture
async def signed_client(
    tmp_path,
    database: Database,
    provider: SandboxSettlementProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Client for an application that requires webhook signatures."""
    settings = make_settings(tmp_path, webhook_secret=WEBHOOK_SECRET)
    app = create_app(settings, database=database, provider=provider)
    async for c in _client_for(app):
        yield c


@pytest.fixture
async def vendor_id(client: AsyncClient) -> str:
    """An ACTIVE vendor created through the API."""
    response = await client.post(f"{API}/vendors", json=vendor_payload())
    assert response.status_code == 201
    return response.json()["id"]
