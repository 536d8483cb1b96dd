"""Outbound write path shared by the fan-out router and the signaling broker."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from starlette.websockets import WebSocket

from firelink.realtime.protocol import Event

logger = logging.getLogger(__name__)

FailureHandler = Callable[[str], None]


class ChannelClosed(Exception):
    """Write attempted on a channel that is closed or already failed."""


class Channel:
    """
    Outbound side of one socket.

    Owned by the gateway. Everyone else may send through it but only the
    gateway closes it. Writes are serialized with a per-channel lock so
    concurrent fan-outs never interleave frames. The timeout covers both
    waiting for the lock and the write itself, and once a write fails every
    queued write fails immediately, so a stalled peer costs its callers at
    most one timeout.
    """

    def __init__(self, websocket: WebSocket, send_timeout: float = 5.0):
        self.websocket = websocket
        self.send_timeout = send_timeout
        self.closed = False
        self.failed = False
        self._lock = asyncio.Lock()

    async def send(self, event: Event) -> None:
        """Serialize and write one event. Raises on transport failure or timeout."""
        if self.closed or self.failed:
            raise ChannelClosed("channel is no longer writable")
        await asyncio.wait_for(self._write(event), timeout=self.send_timeout)

    async def _write(self, event: Event) -> None:
        async with self._lock:
            if self.closed or self.failed:
                raise ChannelClosed("channel is no longer writable")
            try:
                await self.websocket.send_json(event.to_wire())
            except (Exception, asyncio.CancelledError):
                self.failed = True
                raise

    async def close(self, code: int = 1000) -> None:
        """Close the transport once; errors from an already-dead socket are ignored."""
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code)
        except Exception as e:
            logger.debug(f"Close on dead websocket: {e}")


@dataclass(frozen=True, slots=True)
class Outbound:
    """One pending write to one connection."""

    connection_id: str
    channel: Channel
    event: Event


async def _send_safe(outbound: Outbound) -> bool:
    """Send one event, reporting failure instead of raising."""
    try:
        await outbound.channel.send(outbound.event)
        return True
    except Exception as e:
        logger.warning(
            f"Failed to send {outbound.event.type} to {outbound.connection_id}: {e!r}"
        )
        return False


async def deliver(
    outbounds: Iterable[Outbound],
    on_failure: FailureHandler | None = None,
) -> int:
    """
    Write every outbound concurrently and return the number delivered.

    A failed write never affects the others. ``on_failure`` is called once
    per connection that had at least one failed write.
    """
    outbounds = list(outbounds)
    if not outbounds:
        return 0

    results = await asyncio.gather(*(_send_safe(o) for o in outbounds))

    failed: dict[str, None] = {}
    for outbound, ok in zip(outbounds, results):
        if not ok:
            failed[outbound.connection_id] = None

    if on_failure is not None:
        for connection_id in failed:
            on_failure(connection_id)

    return sum(1 for ok in results if ok)
