"""In-memory registry of live socket connections and their presence state."""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from firelink.realtime.delivery import Channel
from firelink.realtime.protocol import PresenceRole
from firelink.schemas.common import Coordinates


@dataclass
class ConnectionEntry:
    """Presence state for one live connection."""

    connection_id: str
    channel: Channel
    subscriber_id: str | None = None
    role: PresenceRole | None = None
    coordinates: Coordinates | None = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_seen: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_locatable(self) -> bool:
        """Eligible for proximity queries: has a role and a known location."""
        return self.role is not None and self.coordinates is not None


class ConnectionRegistry:
    """
    Table of live connections keyed by server-generated connection id.

    All methods are synchronous and guarded by a plain lock, so they can be
    called from the event loop or from scheduler threads and never wait on
    socket I/O. Reads hand out copies; the underlying dict never leaves
    this class.
    """

    def __init__(self):
        self._entries: dict[str, ConnectionEntry] = {}
        self._lock = threading.Lock()

    @property
    def connection_count(self) -> int:
        """Number of live connections."""
        with self._lock:
            return len(self._entries)

    def add(self, connection_id: str, channel: Channel) -> None:
        """Create an entry in the connected-but-unregistered state."""
        with self._lock:
            if connection_id in self._entries:
                raise ValueError(f"Connection {connection_id} is already registered")
            self._entries[connection_id] = ConnectionEntry(
                connection_id=connection_id, channel=channel
            )

    def set_presence(
        self,
        connection_id: str,
        role: PresenceRole,
        coordinates: Coordinates | None = None,
        subscriber_id: str | None = None,
    ) -> bool:
        """
        Set role, location and subscriber for a connection.

        Returns False (and changes nothing) if the connection is already
        gone, which happens when a disconnect races a register frame.
        """
        with self._lock:
            entry = self._entries.get(connection_id)
            if entry is None:
                return False
            entry.role = role
            entry.coordinates = coordinates
            entry.subscriber_id = subscriber_id
            return True

    def update_location(self, connection_id: str, coordinates: Coordinates) -> bool:
        """Replace the last known location. No-op for unknown connections."""
        with self._lock:
            entry = self._entries.get(connection_id)
            if entry is None:
                return False
            entry.coordinates = coordinates
            return True

    def touch(self, connection_id: str, at: datetime | None = None) -> None:
        """Record inbound activity for liveness tracking."""
        with self._lock:
            entry = self._entries.get(connection_id)
            if entry is not None:
                entry.last_seen = at or datetime.now(UTC)

    def remove(self, connection_id: str) -> ConnectionEntry | None:
        """Delete an entry, returning it if it was present."""
        with self._lock:
            return self._entries.pop(connection_id, None)

    def get(self, connection_id: str) -> ConnectionEntry | None:
        """Copy of one entry, or None."""
        with self._lock:
            entry = self._entries.get(connection_id)
            return replace(entry) if entry is not None else None

    def snapshot(self) -> list[ConnectionEntry]:
        """Point-in-time copies of every entry, safe to iterate while others mutate."""
        with self._lock:
            return [replace(entry) for entry in self._entries.values()]

    def stale(self, seen_before: datetime) -> list[str]:
        """Ids of connections with no inbound activity since ``seen_before``."""
        with self._lock:
            return [
                entry.connection_id
                for entry in self._entries.values()
                if entry.last_seen < seen_before
            ]
