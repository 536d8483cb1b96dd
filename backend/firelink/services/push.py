"""Push collaborator for devices that are not connected."""

import logging
from typing import Protocol

from firelink.schemas.common import CamelModel, Coordinates

logger = logging.getLogger(__name__)


class PushPayload(CamelModel):
    """Notification shown on a device near an incident, or on a responder's device."""

    title: str
    body: str
    incident_id: str
    category: str
    lat: float
    lng: float
    play_ringtone: bool = True
    # Only filled in for responder alerts
    reporter_name: str | None = None
    reporter_phone: str | None = None


class PushNotifier(Protocol):
    async def notify_nearby(
        self, center: Coordinates, radius_km: float, payload: PushPayload
    ) -> None: ...

    async def notify_responders(self, payload: PushPayload) -> None: ...


class LoggingPushNotifier:
    """
    Push notifier that only logs what would be sent.

    Stands in until a device push provider is configured.
    """

    async def notify_nearby(
        self, center: Coordinates, radius_km: float, payload: PushPayload
    ) -> None:
        logger.info(
            f"Push to devices within {radius_km} km of "
            f"({center.latitude:.4f}, {center.longitude:.4f}): {payload.title} - {payload.body}"
        )

    async def notify_responders(self, payload: PushPayload) -> None:
        logger.info(
            f"Responder push for incident {payload.incident_id}: {payload.title} - {payload.body}"
        )
