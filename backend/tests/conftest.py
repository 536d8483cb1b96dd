"""Pytest fixtures for FireLink relay tests."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from firelink.config import Settings
from firelink.main import create_app
from firelink.realtime.broker import SignalingBroker
from firelink.realtime.delivery import Channel
from firelink.realtime.fanout import ProximityRouter
from firelink.realtime.gateway import Gateway
from firelink.realtime.protocol import PresenceRole
from firelink.realtime.registry import ConnectionRegistry
from firelink.schemas.common import Coordinates
from firelink.schemas.incident import IncidentCategory, IncidentOut
from firelink.services.auth import StaticTokenVerifier
from firelink.services.storage import MemoryIncidentStore

SF = Coordinates(latitude=37.7749, longitude=-122.4194)
RESPONDER_TOKEN = "responder-token"


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults."""
    return Settings(
        storage_backend="memory",
        responder_tokens={RESPONDER_TOKEN: "responder-1"},
        send_timeout_seconds=1.0,
        debug=True,
    )


@pytest.fixture
def make_channel() -> Callable[..., Channel]:
    """Factory for channels over mocked websockets."""

    def _make(fail: bool = False) -> Channel:
        ws = AsyncMock()
        if fail:
            ws.send_json.side_effect = Exception("Connection closed")
        return Channel(ws, send_timeout=1.0)

    return _make


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def router(registry) -> ProximityRouter:
    return ProximityRouter(registry, radius_km=0.2)


@pytest.fixture
def broker() -> SignalingBroker:
    return SignalingBroker()


@pytest.fixture
def gateway(registry, router, broker) -> Gateway:
    return Gateway(registry, router, broker, send_timeout=1.0)


@pytest.fixture
def add_member(registry, make_channel):
    """Register a connection with a role and location; returns its channel."""

    def _add(
        connection_id: str,
        lat: float | None = None,
        lng: float | None = None,
        role: PresenceRole | None = PresenceRole.COMMUNITY,
        fail: bool = False,
    ) -> Channel:
        channel = make_channel(fail=fail)
        registry.add(connection_id, channel)
        if role is not None:
            coords = (
                Coordinates(latitude=lat, longitude=lng)
                if lat is not None and lng is not None
                else None
            )
            registry.set_presence(connection_id, role, coords)
        return channel

    return _add


@pytest.fixture
def sample_incident() -> IncidentOut:
    """Incident reported in downtown San Francisco."""
    return IncidentOut(
        id="inc-1",
        lat=SF.latitude,
        lng=SF.longitude,
        category=IncidentCategory.FIRE,
        note="Smoke from kitchen window",
        created_at=datetime(2024, 1, 18, 10, 30, 0, tzinfo=UTC),
    )


@pytest.fixture
def memory_store() -> MemoryIncidentStore:
    return MemoryIncidentStore()


@pytest.fixture
def app(test_settings) -> FastAPI:
    """App wired to in-memory storage with no background jobs."""
    return create_app(
        settings=test_settings,
        store=MemoryIncidentStore(),
        token_verifier=StaticTokenVerifier(test_settings.responder_tokens),
        run_background_jobs=False,
    )


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def sent_events(channel: Channel) -> list[dict]:
    """Every payload written to a mocked channel, in order."""
    return [call.args[0] for call in channel.websocket.send_json.call_args_list]
