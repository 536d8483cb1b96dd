"""Incident storage collaborators: in-memory and SQL-backed."""

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from firelink.models import Incident
from firelink.realtime.geo import BOX_PADDING, bounding_box, distance_km
from firelink.schemas.common import Coordinates
from firelink.schemas.incident import (
    IncidentCreate,
    IncidentOut,
    IncidentStatus,
    IncidentUpdate,
)

logger = logging.getLogger(__name__)

OPEN_STATUSES = (IncidentStatus.ACTIVE, IncidentStatus.IN_PROGRESS)


class IncidentStore(Protocol):
    """Narrow CRUD interface the incident service depends on."""

    async def create_incident(self, data: IncidentCreate) -> IncidentOut: ...

    async def update_incident(
        self, incident_id: str, patch: IncidentUpdate
    ) -> IncidentOut | None: ...

    async def active_incidents(self) -> list[IncidentOut]: ...

    async def incidents_near(
        self, center: Coordinates, radius_km: float
    ) -> list[IncidentOut]: ...


def _apply_patch(current: dict, patch: IncidentUpdate) -> dict:
    """Merge set fields of a patch; resolving stamps resolved_at once."""
    changes = patch.model_dump(exclude_none=True)
    merged = {**current, **changes}
    if merged.get("status") == IncidentStatus.RESOLVED and merged.get("resolved_at") is None:
        merged["resolved_at"] = datetime.now(UTC)
    return merged


def _within(incidents: list[IncidentOut], center: Coordinates, radius_km: float) -> list[IncidentOut]:
    return [i for i in incidents if distance_km(center, i.coordinates) <= radius_km]


class MemoryIncidentStore:
    """Dict-backed store for development and tests. Contents die with the process."""

    def __init__(self):
        self._incidents: dict[str, IncidentOut] = {}
        self._lock = asyncio.Lock()

    async def create_incident(self, data: IncidentCreate) -> IncidentOut:
        incident = IncidentOut(
            id=str(uuid.uuid4()),
            created_at=datetime.now(UTC),
            **data.model_dump(),
        )
        async with self._lock:
            self._incidents[incident.id] = incident
        return incident

    async def update_incident(
        self, incident_id: str, patch: IncidentUpdate
    ) -> IncidentOut | None:
        async with self._lock:
            current = self._incidents.get(incident_id)
            if current is None:
                return None
            updated = IncidentOut.model_validate(_apply_patch(current.model_dump(), patch))
            self._incidents[incident_id] = updated
            return updated

    async def active_incidents(self) -> list[IncidentOut]:
        async with self._lock:
            incidents = [i for i in self._incidents.values() if i.status in OPEN_STATUSES]
        return sorted(incidents, key=lambda i: i.created_at, reverse=True)

    async def incidents_near(self, center: Coordinates, radius_km: float) -> list[IncidentOut]:
        async with self._lock:
            active = [i for i in self._incidents.values() if i.status == IncidentStatus.ACTIVE]
        return _within(active, center, radius_km)


class SQLIncidentStore:
    """Store backed by the ``incidents`` table through an async session factory."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create_incident(self, data: IncidentCreate) -> IncidentOut:
        row = Incident(
            id=str(uuid.uuid4()),
            created_at=datetime.now(UTC),
            status=IncidentStatus.ACTIVE.value,
            **data.model_dump(mode="json"),
        )
        async with self.session_maker() as session:
            session.add(row)
            await session.commit()
            return IncidentOut.model_validate(row)

    async def update_incident(
        self, incident_id: str, patch: IncidentUpdate
    ) -> IncidentOut | None:
        async with self.session_maker() as session:
            row = await session.get(Incident, incident_id)
            if row is None:
                return None

            current = {"status": row.status, "resolved_at": row.resolved_at}
            merged = _apply_patch(current, patch)
            row.status = IncidentStatus(merged["status"]).value
            row.resolved_at = merged["resolved_at"]
            if patch.assigned_responder_id is not None:
                row.assigned_responder_id = patch.assigned_responder_id

            await session.commit()
            logger.debug(f"Updated incident {incident_id}: status={row.status}")
            return IncidentOut.model_validate(row)

    async def active_incidents(self) -> list[IncidentOut]:
        query = (
            select(Incident)
            .where(Incident.status.in_([s.value for s in OPEN_STATUSES]))
            .order_by(Incident.created_at.desc())
        )
        async with self.session_maker() as session:
            result = await session.execute(query)
            return [IncidentOut.model_validate(row) for row in result.scalars()]

    async def incidents_near(self, center: Coordinates, radius_km: float) -> list[IncidentOut]:
        # Cheap box filter in SQL, exact haversine check in Python
        box = bounding_box(center, radius_km * BOX_PADDING)
        query = select(Incident).where(
            Incident.status == IncidentStatus.ACTIVE.value,
            Incident.lat.between(box.min_lat, box.max_lat),
            Incident.lng.between(box.min_lng, box.max_lng),
        )
        async with self.session_maker() as session:
            result = await session.execute(query)
            incidents = [IncidentOut.model_validate(row) for row in result.scalars()]
        return _within(incidents, center, radius_km)
