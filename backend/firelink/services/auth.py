"""Auth collaborator: maps bearer tokens to principals."""

from dataclasses import dataclass
from typing import Protocol

from firelink.realtime.protocol import PresenceRole


@dataclass(frozen=True)
class Principal:
    """Who a verified token belongs to."""

    subscriber_id: str
    role: PresenceRole


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Principal | None: ...


class StaticTokenVerifier:
    """
    Verifier over a fixed token table from settings.

    Every configured token identifies a responder. Token issuance lives
    outside this service.
    """

    def __init__(self, responder_tokens: dict[str, str]):
        self._tokens = dict(responder_tokens)

    def verify(self, token: str) -> Principal | None:
        subscriber_id = self._tokens.get(token)
        if subscriber_id is None:
            return None
        return Principal(subscriber_id=subscriber_id, role=PresenceRole.RESPONDER)
