"""Gateway between socket transports and the realtime core."""

import asyncio
import logging
import uuid
from datetime import UTC, datetime, timedelta

from starlette.websockets import WebSocket

from firelink.realtime.broker import SignalingBroker
from firelink.realtime.delivery import Channel, Outbound, deliver
from firelink.realtime.fanout import ProximityRouter
from firelink.realtime.protocol import (
    ConnectedEvent,
    Frame,
    FrameError,
    HeartbeatAckEvent,
    HeartbeatFrame,
    JoinCallFrame,
    LeaveCallFrame,
    LocationUpdateFrame,
    RegisterFrame,
    SignalFrame,
    UnknownFrameError,
    decode_frame,
)
from firelink.realtime.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Gateway:
    """
    Owns socket transports and turns decoded frames into core operations.

    One instance per server. It creates the registry and broker entries on
    connect, dispatches each inbound frame synchronously, delivers whatever
    writes the core asks for, and tears everything down exactly once when a
    connection goes away (client close, failed write, or liveness sweep).
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        router: ProximityRouter,
        broker: SignalingBroker,
        send_timeout: float = 5.0,
    ):
        self.registry = registry
        self.router = router
        self.broker = broker
        self.send_timeout = send_timeout
        self._channels: dict[str, Channel] = {}
        self._cleanup_tasks: set[asyncio.Task] = set()
        router.add_failure_listener(self._schedule_disconnect)

    @property
    def connection_count(self) -> int:
        """Number of sockets currently owned by the gateway."""
        return len(self._channels)

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a socket, register it everywhere and greet it with its id."""
        await websocket.accept()

        connection_id = uuid.uuid4().hex
        channel = Channel(websocket, send_timeout=self.send_timeout)
        self._channels[connection_id] = channel
        self.registry.add(connection_id, channel)
        self.broker.connect(connection_id, channel)
        logger.info(
            f"WebSocket connected: {connection_id}. Total connections: {self.connection_count}"
        )

        await self._deliver(
            [Outbound(connection_id, channel, ConnectedEvent(connection_id=connection_id))]
        )
        return connection_id

    async def disconnect(self, connection_id: str, close: bool = False) -> None:
        """
        Remove a connection from the registry and its call room.

        Safe to call any number of times; only the first call does work.
        """
        channel = self._channels.pop(connection_id, None)
        if channel is None:
            return

        self.registry.remove(connection_id)
        outbounds = self.broker.disconnect(connection_id)
        # peer-left is queued before any await so later room events cannot overtake it
        await self._deliver(outbounds)
        if close:
            await channel.close()
        logger.info(
            f"WebSocket disconnected: {connection_id}. Total connections: {self.connection_count}"
        )

    async def handle(self, connection_id: str, raw: str | bytes) -> None:
        """Decode one inbound message and dispatch it. Bad frames are logged and dropped."""
        self.registry.touch(connection_id)
        try:
            frame = decode_frame(raw)
        except UnknownFrameError as e:
            logger.info(f"Ignoring frame from {connection_id}: {e}")
            return
        except FrameError as e:
            logger.warning(f"Dropping malformed frame from {connection_id}: {e}")
            return

        await self.dispatch(connection_id, frame)

    async def dispatch(self, connection_id: str, frame: Frame) -> None:
        """Apply one typed frame on behalf of ``connection_id``."""
        if isinstance(frame, RegisterFrame):
            self.registry.set_presence(
                connection_id,
                role=frame.role,
                coordinates=frame.coordinates,
                subscriber_id=frame.subscriber_id,
            )
            logger.info(
                f"Connection {connection_id} registered as {frame.role} at {frame.lat}, {frame.lng}"
            )

        elif isinstance(frame, LocationUpdateFrame):
            self.registry.update_location(connection_id, frame.coordinates)

        elif isinstance(frame, HeartbeatFrame):
            channel = self._channels.get(connection_id)
            if channel is not None:
                await self._deliver([Outbound(connection_id, channel, HeartbeatAckEvent())])

        elif isinstance(frame, JoinCallFrame):
            await self._deliver(
                self.broker.join(
                    connection_id,
                    frame.room_id,
                    frame.role,
                    subscriber_id=frame.subscriber_id,
                )
            )

        elif isinstance(frame, SignalFrame):
            await self._deliver(
                self.broker.relay(connection_id, frame.to, frame.kind, frame.payload)
            )

        elif isinstance(frame, LeaveCallFrame):
            await self._deliver(self.broker.leave(connection_id))

    async def prune_stale(self, max_idle_seconds: float) -> int:
        """Close and clean up connections with no inbound traffic for too long."""
        cutoff = datetime.now(UTC) - timedelta(seconds=max_idle_seconds)
        stale = self.registry.stale(cutoff)
        for connection_id in stale:
            logger.info(f"Pruning idle connection {connection_id}")
            await self.disconnect(connection_id, close=True)
        return len(stale)

    async def _deliver(self, outbounds: list[Outbound]) -> int:
        return await deliver(outbounds, on_failure=self._schedule_disconnect)

    def _schedule_disconnect(self, connection_id: str) -> None:
        """Treat a failed write as a disconnect, without re-entering the sender."""
        self.registry.remove(connection_id)
        if connection_id not in self._channels:
            return
        # Cleanup runs in its own task to avoid nesting deliveries.
        task = asyncio.create_task(self.disconnect(connection_id, close=True))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def drain(self) -> None:
        """Wait for scheduled disconnect cleanups to finish."""
        while self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)
