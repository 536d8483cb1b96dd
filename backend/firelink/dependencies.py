"""Request dependencies: shared components, auth and rate limiting."""

from typing import Annotated

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import HTTPConnection

from firelink.realtime.gateway import Gateway
from firelink.realtime.protocol import PresenceRole
from firelink.services.auth import Principal, TokenVerifier
from firelink.services.incidents import IncidentService

limiter = Limiter(key_func=get_remote_address)

bearer_scheme = HTTPBearer(auto_error=False)


def get_gateway(conn: HTTPConnection) -> Gateway:
    return conn.app.state.gateway


def get_incident_service(conn: HTTPConnection) -> IncidentService:
    return conn.app.state.incident_service


def get_token_verifier(conn: HTTPConnection) -> TokenVerifier:
    return conn.app.state.token_verifier


def require_responder(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_token_verifier)],
) -> Principal:
    """Resolve the bearer token to a responder, or reject the request."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Access token required")

    principal = verifier.verify(credentials.credentials)
    if principal is None:
        raise HTTPException(status_code=403, detail="Invalid or expired token")
    if principal.role != PresenceRole.RESPONDER:
        raise HTTPException(status_code=403, detail="Access denied. responder role required.")
    return principal
