"""Pydantic schemas for incidents."""

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from firelink.schemas.common import CamelModel, Coordinates


class IncidentStatus(StrEnum):
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class IncidentCategory(StrEnum):
    FIRE = "fire"
    MEDICAL = "medical"
    GENERAL = "general"


class IncidentCreate(CamelModel):
    """Incident report submitted by a reporter."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    category: IncidentCategory = IncidentCategory.GENERAL
    note: str | None = None
    reporter_name: str | None = None
    reporter_phone: str | None = None


class IncidentUpdate(CamelModel):
    """Partial update applied by a responder."""

    status: IncidentStatus | None = None
    assigned_responder_id: str | None = None


class IncidentOut(CamelModel):
    """Incident as seen by the realtime core and API consumers."""

    id: str
    lat: float
    lng: float
    category: IncidentCategory
    note: str | None = None
    reporter_name: str | None = None
    reporter_phone: str | None = None
    status: IncidentStatus = IncidentStatus.ACTIVE
    created_at: datetime
    resolved_at: datetime | None = None
    assigned_responder_id: str | None = None

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(latitude=self.lat, longitude=self.lng)


class IncidentCreated(CamelModel):
    """Response for a newly reported incident."""

    id: str
    created_at: datetime
    status: IncidentStatus
    notified: int


class IncidentsResponse(CamelModel):
    """List of incidents."""

    incidents: list[IncidentOut]
