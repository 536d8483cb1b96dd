"""WebSocket endpoint for presence, incident alerts and call signaling."""

import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketState

from firelink.realtime.gateway import Gateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
@router.websocket("/webrtc")
async def websocket_relay(websocket: WebSocket):
    """
    Realtime socket shared by community members, reporters and responders.

    Protocol:
    - Client connects and receives its connection id
    - Client registers a role and (optionally) a location, then keeps the
      location fresh with location-update frames
    - Server pushes incident-new to community members near a new incident
      and to all responders, and incident-updated to everyone
    - Clients join a call room per incident and exchange offer/answer/ICE
      through the server
    - Client sends heartbeat periodically; idle sockets are pruned

    See firelink.realtime.protocol for the frame formats.
    """
    gateway: Gateway = websocket.app.state.gateway
    connection_id = await gateway.connect(websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw_message = message.get("text")
            if raw_message is None:
                raw_message = message.get("bytes") or b""
            await gateway.handle(connection_id, raw_message)

    except Exception as e:
        if websocket.application_state == WebSocketState.DISCONNECTED:
            logger.debug(f"WebSocket {connection_id} closed by server")
        else:
            logger.exception(f"WebSocket error on {connection_id}: {e}")
    finally:
        await gateway.disconnect(connection_id)
