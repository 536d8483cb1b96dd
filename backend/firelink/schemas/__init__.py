"""Pydantic schemas for API request/response validation."""

from firelink.schemas.common import BoundingBox, CamelModel, Coordinates
from firelink.schemas.incident import (
    IncidentCategory,
    IncidentCreate,
    IncidentCreated,
    IncidentOut,
    IncidentsResponse,
    IncidentStatus,
    IncidentUpdate,
)

__all__ = [
    "BoundingBox",
    "CamelModel",
    "Coordinates",
    "IncidentCategory",
    "IncidentCreate",
    "IncidentCreated",
    "IncidentOut",
    "IncidentsResponse",
    "IncidentStatus",
    "IncidentUpdate",
]
