"""Service layer and external collaborators."""

from firelink.services.auth import Principal, StaticTokenVerifier, TokenVerifier
from firelink.services.incidents import IncidentService
from firelink.services.push import LoggingPushNotifier, PushNotifier, PushPayload
from firelink.services.storage import IncidentStore, MemoryIncidentStore, SQLIncidentStore

__all__ = [
    "IncidentService",
    "IncidentStore",
    "LoggingPushNotifier",
    "MemoryIncidentStore",
    "Principal",
    "PushNotifier",
    "PushPayload",
    "SQLIncidentStore",
    "StaticTokenVerifier",
    "TokenVerifier",
]
