"""Incident intake and status changes, wired to the realtime fan-out."""

import logging

from firelink.realtime.fanout import ProximityRouter
from firelink.realtime.protocol import IncidentNewEvent, IncidentUpdatedEvent, PresenceRole
from firelink.schemas.common import Coordinates
from firelink.schemas.incident import IncidentCreate, IncidentOut, IncidentUpdate
from firelink.services.push import PushNotifier, PushPayload
from firelink.services.storage import IncidentStore

logger = logging.getLogger(__name__)


class IncidentService:
    """
    Coordinates storage, live fan-out and device push for incidents.

    A new incident goes to community members within the alert radius (with
    their distance), to every connected responder regardless of distance,
    and to the push collaborator for offline devices near the incident and
    for responders (with the reporter's contact details).
    """

    def __init__(
        self,
        store: IncidentStore,
        router: ProximityRouter,
        push: PushNotifier,
        radius_km: float = 0.2,
    ):
        self.store = store
        self.router = router
        self.push = push
        self.radius_km = radius_km

    async def report(self, data: IncidentCreate) -> tuple[IncidentOut, int]:
        """Store a new incident and alert everyone who should know. Returns (incident, members alerted)."""
        incident = await self.store.create_incident(data)
        logger.info(f"Incident created: {incident.id} at {incident.lat}, {incident.lng}")

        notified = await self.router.fan_out(incident, self.radius_km)
        responders = await self.router.notify_role(
            PresenceRole.RESPONDER, IncidentNewEvent(event=incident)
        )
        logger.info(f"Incident {incident.id}: notified {responders} responders")

        await self._push_nearby(incident)
        await self._push_responders(incident)
        return incident, notified

    async def update(self, incident_id: str, patch: IncidentUpdate) -> IncidentOut | None:
        """Apply a status change and broadcast it. None if the incident does not exist."""
        incident = await self.store.update_incident(incident_id, patch)
        if incident is None:
            return None

        await self.router.broadcast_all(IncidentUpdatedEvent(event=incident))
        return incident

    async def active(self) -> list[IncidentOut]:
        return await self.store.active_incidents()

    async def near(self, center: Coordinates, radius_km: float | None = None) -> list[IncidentOut]:
        radius = self.radius_km if radius_km is None else radius_km
        return await self.store.incidents_near(center, radius)

    async def _push_nearby(self, incident: IncidentOut) -> None:
        payload = PushPayload(
            title="EMERGENCY NEARBY",
            body=(
                f"{incident.category.upper()} alert within "
                f"{round(self.radius_km * 1000)}m: {incident.note or 'Emergency alert'}"
            ),
            incident_id=incident.id,
            category=incident.category,
            lat=incident.lat,
            lng=incident.lng,
        )
        try:
            await self.push.notify_nearby(incident.coordinates, self.radius_km, payload)
        except Exception as e:
            logger.error(f"Push notification failed for incident {incident.id}: {e}", exc_info=True)

    async def _push_responders(self, incident: IncidentOut) -> None:
        payload = PushPayload(
            title=f"New {incident.category.upper()} Emergency",
            body=f"Location: {incident.lat:.5f}, {incident.lng:.5f}",
            incident_id=incident.id,
            category=incident.category,
            lat=incident.lat,
            lng=incident.lng,
            reporter_name=incident.reporter_name,
            reporter_phone=incident.reporter_phone,
        )
        try:
            await self.push.notify_responders(payload)
        except Exception as e:
            logger.error(f"Responder push failed for incident {incident.id}: {e}", exc_info=True)
