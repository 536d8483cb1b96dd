"""Wire protocol for the realtime socket: inbound frames and outbound events.

Frames are decoded exactly once, at the gateway boundary, into one of the
typed models below. Everything downstream works with those models only.

Client -> Server:
    {"type": "register", "role": "community", "lat": 37.77, "lng": -122.41, "subscriberId": "u1"}
    {"type": "location-update", "lat": 37.77, "lng": -122.41}
    {"type": "heartbeat"}
    {"type": "join-call", "roomId": "<incident id>", "role": "initiator", "subscriberId": "u1"}
    {"type": "signal-offer" | "signal-answer" | "signal-ice", "to": "<connection id>", "payload": {...}}
    {"type": "leave-call"}

Server -> Client:
    {"type": "connected", "connectionId": "..."}
    {"type": "heartbeat-ack"}
    {"type": "incident-new", "event": {...}, "distanceKm": 0.12}
    {"type": "incident-updated", "event": {...}}
    {"type": "peer-joined" | "peer-left", "connectionId": "...", "role": "responder"}
    {"type": "invite", "peerId": "..."}
    {"type": "signal-offer" | "signal-answer" | "signal-ice", "from": "...", "payload": {...}}
"""

import json
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter, ValidationError

from firelink.schemas.common import CamelModel, Coordinates
from firelink.schemas.incident import IncidentOut


class FrameError(Exception):
    """Inbound frame could not be decoded."""

    pass


class UnknownFrameError(FrameError):
    """Inbound frame has a type this server does not handle."""

    pass


class PresenceRole(StrEnum):
    RESPONDER = "responder"
    COMMUNITY = "community"
    REPORTER = "reporter"


class CallRole(StrEnum):
    INITIATOR = "initiator"
    RESPONDER = "responder"


class SignalKind(StrEnum):
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"


SIGNAL_FRAME_KINDS: dict[str, SignalKind] = {
    "signal-offer": SignalKind.OFFER,
    "signal-answer": SignalKind.ANSWER,
    "signal-ice": SignalKind.ICE_CANDIDATE,
}
SIGNAL_EVENT_TYPES: dict[SignalKind, str] = {v: k for k, v in SIGNAL_FRAME_KINDS.items()}


# ---------------------------------------------------------------------------
# Inbound frames
# ---------------------------------------------------------------------------


class RegisterFrame(CamelModel):
    type: Literal["register"] = "register"
    role: PresenceRole
    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)
    subscriber_id: str | None = None

    @property
    def coordinates(self) -> Coordinates | None:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(latitude=self.lat, longitude=self.lng)


class LocationUpdateFrame(CamelModel):
    type: Literal["location-update"] = "location-update"
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(latitude=self.lat, longitude=self.lng)


class HeartbeatFrame(CamelModel):
    type: Literal["heartbeat"] = "heartbeat"


class JoinCallFrame(CamelModel):
    type: Literal["join-call"] = "join-call"
    room_id: str = Field(..., min_length=1)
    role: CallRole
    subscriber_id: str | None = None


class SignalFrame(CamelModel):
    type: Literal["signal-offer", "signal-answer", "signal-ice"]
    to: str
    payload: Any = None

    @property
    def kind(self) -> SignalKind:
        return SIGNAL_FRAME_KINDS[self.type]


class LeaveCallFrame(CamelModel):
    type: Literal["leave-call"] = "leave-call"


Frame = Annotated[
    Union[
        RegisterFrame,
        LocationUpdateFrame,
        HeartbeatFrame,
        JoinCallFrame,
        SignalFrame,
        LeaveCallFrame,
    ],
    Field(discriminator="type"),
]

FRAME_TYPES = frozenset(
    {"register", "location-update", "heartbeat", "join-call", "leave-call", *SIGNAL_FRAME_KINDS}
)

_frame_adapter: TypeAdapter[Frame] = TypeAdapter(Frame)


def decode_frame(raw: str | bytes) -> Frame:
    """
    Decode one raw socket message into a typed frame.

    Raises:
        UnknownFrameError: the frame's type is not one this server handles.
        FrameError: the message is not a JSON object or fails validation.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FrameError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise FrameError("Frame must be a JSON object")

    frame_type = data.get("type")
    if not isinstance(frame_type, str) or frame_type not in FRAME_TYPES:
        raise UnknownFrameError(f"Unknown frame type: {frame_type!r}")

    try:
        return _frame_adapter.validate_python(data)
    except ValidationError as e:
        raise FrameError(f"Invalid {frame_type} frame: {e.error_count()} error(s)") from e


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


class ConnectedEvent(CamelModel):
    type: Literal["connected"] = "connected"
    connection_id: str


class HeartbeatAckEvent(CamelModel):
    type: Literal["heartbeat-ack"] = "heartbeat-ack"


class IncidentNewEvent(CamelModel):
    type: Literal["incident-new"] = "incident-new"
    event: IncidentOut
    distance_km: float | None = None


class IncidentUpdatedEvent(CamelModel):
    type: Literal["incident-updated"] = "incident-updated"
    event: IncidentOut


class PeerEvent(CamelModel):
    type: Literal["peer-joined", "peer-left"]
    connection_id: str
    role: CallRole | None = None
    subscriber_id: str | None = None


class InviteEvent(CamelModel):
    type: Literal["invite"] = "invite"
    peer_id: str


class SignalEvent(CamelModel):
    type: Literal["signal-offer", "signal-answer", "signal-ice"]
    sender: str = Field(..., alias="from")
    payload: Any = None


Event = Union[
    ConnectedEvent,
    HeartbeatAckEvent,
    IncidentNewEvent,
    IncidentUpdatedEvent,
    PeerEvent,
    InviteEvent,
    SignalEvent,
]
