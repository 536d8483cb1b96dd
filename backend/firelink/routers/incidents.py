"""API routes for reporting and updating incidents."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from firelink.config import get_settings
from firelink.dependencies import get_incident_service, limiter, require_responder
from firelink.schemas.common import Coordinates
from firelink.schemas.incident import (
    IncidentCreate,
    IncidentCreated,
    IncidentOut,
    IncidentsResponse,
    IncidentUpdate,
)
from firelink.services.auth import Principal
from firelink.services.incidents import IncidentService

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/incidents", tags=["incidents"])


@router.post("", response_model=IncidentCreated, status_code=201)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def report_incident(
    request: Request,
    data: IncidentCreate,
    service: Annotated[IncidentService, Depends(get_incident_service)],
) -> IncidentCreated:
    """
    Report a new incident.

    Alerts connected community members within the alert radius, every
    connected responder, and nearby devices through push.
    """
    incident, notified = await service.report(data)
    return IncidentCreated(
        id=incident.id,
        created_at=incident.created_at,
        status=incident.status,
        notified=notified,
    )


@router.get("", response_model=IncidentsResponse)
async def list_incidents(
    service: Annotated[IncidentService, Depends(get_incident_service)],
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    radius: float | None = Query(None, gt=0, le=50, description="Radius in km"),
) -> IncidentsResponse:
    """
    List open incidents.

    With lat/lng, only active incidents within the radius (default: the
    alert radius) of that point are returned.
    """
    if lat is not None and lng is not None:
        incidents = await service.near(Coordinates(latitude=lat, longitude=lng), radius)
    else:
        incidents = await service.active()
    return IncidentsResponse(incidents=incidents)


@router.patch("/{incident_id}", response_model=IncidentOut)
async def update_incident(
    incident_id: str,
    patch: IncidentUpdate,
    principal: Annotated[Principal, Depends(require_responder)],
    service: Annotated[IncidentService, Depends(get_incident_service)],
) -> IncidentOut:
    """Change an incident's status (responders only). Defaults the assignee to the caller."""
    patch = IncidentUpdate(
        status=patch.status,
        assigned_responder_id=patch.assigned_responder_id or principal.subscriber_id,
    )
    incident = await service.update(incident_id, patch)
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")
    return incident
