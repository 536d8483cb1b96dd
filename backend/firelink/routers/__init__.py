"""API routers."""

from firelink.routers.health import router as health_router
from firelink.routers.incidents import router as incidents_router

__all__ = ["health_router", "incidents_router"]
