"""Call signaling broker: rooms keyed by incident id and peer-to-peer relay."""

import logging
import threading
from dataclasses import dataclass
from typing import Any

from firelink.realtime.delivery import Channel, Outbound
from firelink.realtime.protocol import (
    SIGNAL_EVENT_TYPES,
    CallRole,
    InviteEvent,
    PeerEvent,
    SignalEvent,
    SignalKind,
)

logger = logging.getLogger(__name__)


@dataclass
class SignalingEntry:
    """Signaling state of one connection: Idle when room_id is None, else InRoom."""

    connection_id: str
    channel: Channel
    role: CallRole | None = None
    subscriber_id: str | None = None
    room_id: str | None = None


class SignalingBroker:
    """
    Tracks call rooms and relays offer/answer/ICE messages between peers.

    Keeps its own connection table, independent from the presence
    registry. Every method mutates state under one lock without awaiting
    and returns the writes it wants performed; the caller delivers them.
    Because notifications are computed under the lock, members of a room
    see peer-joined/peer-left in the order the broker processed them.

    A connection is in at most one room. Joining a different room first
    leaves the current one.
    """

    def __init__(self):
        self._connections: dict[str, SignalingEntry] = {}
        self._rooms: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def room_ids(self) -> list[str]:
        with self._lock:
            return list(self._rooms)

    def members(self, room_id: str) -> list[str]:
        with self._lock:
            return list(self._rooms.get(room_id, []))

    def room_of(self, connection_id: str) -> str | None:
        with self._lock:
            entry = self._connections.get(connection_id)
            return entry.room_id if entry else None

    def connect(self, connection_id: str, channel: Channel) -> None:
        with self._lock:
            self._connections[connection_id] = SignalingEntry(
                connection_id=connection_id, channel=channel
            )

    def join(
        self,
        connection_id: str,
        room_id: str,
        role: CallRole,
        subscriber_id: str | None = None,
    ) -> list[Outbound]:
        """
        Put a connection in a room and announce it to the other members.

        The newcomer also gets one peer-joined per member already present.

        A responder joining a room that already holds an initiator also gets
        an ``invite`` naming that initiator, so it can start the offer.
        Re-joining the current room only refreshes role and subscriber.
        """
        with self._lock:
            entry = self._connections.get(connection_id)
            if entry is None:
                return []

            if entry.room_id == room_id:
                entry.role = role
                entry.subscriber_id = subscriber_id
                return []

            outbounds = self._leave_locked(entry) if entry.room_id else []

            entry.role = role
            entry.subscriber_id = subscriber_id
            entry.room_id = room_id
            members = self._rooms.setdefault(room_id, [])
            members.append(connection_id)

            joined = PeerEvent(
                type="peer-joined",
                connection_id=connection_id,
                role=role,
                subscriber_id=subscriber_id,
            )
            others = [
                self._connections[m]
                for m in members
                if m != connection_id and m in self._connections
            ]
            for other in others:
                outbounds.append(
                    Outbound(connection_id=other.connection_id, channel=other.channel, event=joined)
                )
                # The newcomer learns about everyone already in the room
                outbounds.append(
                    Outbound(
                        connection_id=connection_id,
                        channel=entry.channel,
                        event=PeerEvent(
                            type="peer-joined",
                            connection_id=other.connection_id,
                            role=other.role,
                            subscriber_id=other.subscriber_id,
                        ),
                    )
                )

            if role == CallRole.RESPONDER:
                initiator = next((o for o in others if o.role == CallRole.INITIATOR), None)
                if initiator is not None:
                    outbounds.append(
                        Outbound(
                            connection_id=connection_id,
                            channel=entry.channel,
                            event=InviteEvent(peer_id=initiator.connection_id),
                        )
                    )

        logger.info(f"{role} {connection_id} joined call room {room_id}")
        return outbounds

    def relay(
        self,
        from_id: str,
        to_id: str,
        kind: SignalKind,
        payload: Any,
    ) -> list[Outbound]:
        """Forward a signaling payload verbatim, tagged with the sender id."""
        with self._lock:
            if from_id not in self._connections:
                return []
            target = self._connections.get(to_id)
            if target is None:
                logger.debug(f"Dropped {kind} from {from_id}: {to_id} is gone")
                return []
            event = SignalEvent(type=SIGNAL_EVENT_TYPES[kind], sender=from_id, payload=payload)
            return [Outbound(connection_id=to_id, channel=target.channel, event=event)]

    def leave(self, connection_id: str) -> list[Outbound]:
        """Leave the current room. No-op when not in a room."""
        with self._lock:
            entry = self._connections.get(connection_id)
            if entry is None or entry.room_id is None:
                return []
            return self._leave_locked(entry)

    def disconnect(self, connection_id: str) -> list[Outbound]:
        """Forget a connection, leaving its room first."""
        with self._lock:
            entry = self._connections.pop(connection_id, None)
            if entry is None or entry.room_id is None:
                return []
            return self._leave_locked(entry)

    def _leave_locked(self, entry: SignalingEntry) -> list[Outbound]:
        room_id = entry.room_id
        entry.room_id = None

        members = self._rooms.get(room_id, [])
        if entry.connection_id in members:
            members.remove(entry.connection_id)
        if not members:
            self._rooms.pop(room_id, None)

        left = PeerEvent(
            type="peer-left",
            connection_id=entry.connection_id,
            role=entry.role,
            subscriber_id=entry.subscriber_id,
        )
        logger.info(f"{entry.role} {entry.connection_id} left call room {room_id}")
        return [
            Outbound(
                connection_id=member_id,
                channel=self._connections[member_id].channel,
                event=left,
            )
            for member_id in members
            if member_id in self._connections
        ]
