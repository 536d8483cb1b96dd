"""Proximity fan-out: pick recipients by role and distance, then deliver."""

import logging

from firelink.realtime.delivery import FailureHandler, Outbound, deliver
from firelink.realtime.geo import BOX_PADDING, bounding_box, distance_km
from firelink.realtime.protocol import Event, IncidentNewEvent, PresenceRole
from firelink.realtime.registry import ConnectionEntry, ConnectionRegistry
from firelink.schemas.incident import IncidentOut

logger = logging.getLogger(__name__)


class ProximityRouter:
    """
    Routes incident alerts to nearby community members.

    Reads the registry through snapshots only, so delivery never holds the
    registry lock. Recipients whose write fails are removed from the
    registry on the spot and reported to failure listeners (the gateway
    uses this to close the socket and clean up call rooms).
    """

    def __init__(self, registry: ConnectionRegistry, radius_km: float = 0.2):
        self.registry = registry
        self.radius_km = radius_km
        self._failure_listeners: list[FailureHandler] = []

    def add_failure_listener(self, listener: FailureHandler) -> None:
        self._failure_listeners.append(listener)

    def _nearby(
        self, incident: IncidentOut, radius_km: float
    ) -> list[tuple[ConnectionEntry, float]]:
        origin = incident.coordinates
        box = bounding_box(origin, radius_km * BOX_PADDING)

        matches = []
        for entry in self.registry.snapshot():
            if entry.role != PresenceRole.COMMUNITY or entry.coordinates is None:
                continue
            coords = entry.coordinates
            if not box.contains(coords.latitude, coords.longitude):
                continue
            distance = distance_km(origin, coords)
            if distance <= radius_km:
                matches.append((entry, distance))
        return matches

    def route(
        self, incident: IncidentOut, radius_km: float | None = None
    ) -> list[tuple[str, float]]:
        """
        Community connections within ``radius_km`` of the incident (inclusive).

        Returns (connection_id, distance_km) pairs in no particular order.
        """
        radius = self.radius_km if radius_km is None else radius_km
        return [
            (entry.connection_id, distance)
            for entry, distance in self._nearby(incident, radius)
        ]

    async def fan_out(self, incident: IncidentOut, radius_km: float | None = None) -> int:
        """Send ``incident-new`` with the recipient's distance to every nearby member."""
        radius = self.radius_km if radius_km is None else radius_km
        outbounds = [
            Outbound(
                connection_id=entry.connection_id,
                channel=entry.channel,
                event=IncidentNewEvent(event=incident, distance_km=distance),
            )
            for entry, distance in self._nearby(incident, radius)
        ]
        sent = await self._dispatch(outbounds)
        logger.info(
            f"Incident {incident.id}: alerted {sent}/{len(outbounds)} members within {radius} km"
        )
        return sent

    async def broadcast_all(self, event: Event) -> int:
        """Deliver to every live connection regardless of role or location."""
        outbounds = [
            Outbound(connection_id=e.connection_id, channel=e.channel, event=event)
            for e in self.registry.snapshot()
        ]
        return await self._dispatch(outbounds)

    async def notify_role(self, role: PresenceRole, event: Event) -> int:
        """Deliver only to connections currently registered with ``role``."""
        outbounds = [
            Outbound(connection_id=e.connection_id, channel=e.channel, event=event)
            for e in self.registry.snapshot()
            if e.role == role
        ]
        return await self._dispatch(outbounds)

    async def _dispatch(self, outbounds: list[Outbound]) -> int:
        return await deliver(outbounds, on_failure=self._handle_send_failure)

    def _handle_send_failure(self, connection_id: str) -> None:
        if self.registry.remove(connection_id) is not None:
            logger.info(f"Pruned connection {connection_id} after failed send")
        for listener in self._failure_listeners:
            listener(connection_id)
