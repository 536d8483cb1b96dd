"""Realtime core: presence registry, proximity fan-out and call signaling."""

from firelink.realtime.broker import SignalingBroker
from firelink.realtime.fanout import ProximityRouter
from firelink.realtime.gateway import Gateway
from firelink.realtime.registry import ConnectionRegistry
from firelink.realtime.router import router as websocket_router

__all__ = [
    "ConnectionRegistry",
    "Gateway",
    "ProximityRouter",
    "SignalingBroker",
    "websocket_router",
]
