"""Health endpoints."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from firelink.dependencies import get_gateway
from firelink.realtime.gateway import Gateway

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    connections: int
    call_connections: int
    call_rooms: int


@router.get("/health", response_model=HealthResponse)
async def health_check(
    gateway: Annotated[Gateway, Depends(get_gateway)],
) -> HealthResponse:
    """Health check with live connection and call room counts."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        connections=gateway.registry.connection_count,
        call_connections=gateway.broker.connection_count,
        call_rooms=len(gateway.broker.room_ids()),
    )


@router.get("/ready")
async def readiness_check() -> dict:
    """Simple readiness probe for container orchestration."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness probe for container orchestration."""
    return {"status": "alive"}
