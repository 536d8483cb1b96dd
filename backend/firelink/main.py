"""FastAPI application for the FireLink relay."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from firelink.config import Settings, get_settings
from firelink.database import async_session_maker, check_db_ready, init_db
from firelink.dependencies import limiter
from firelink.realtime import (
    ConnectionRegistry,
    Gateway,
    ProximityRouter,
    SignalingBroker,
    websocket_router,
)
from firelink.routers import health_router, incidents_router
from firelink.services import (
    IncidentService,
    IncidentStore,
    LoggingPushNotifier,
    MemoryIncidentStore,
    PushNotifier,
    SQLIncidentStore,
    StaticTokenVerifier,
    TokenVerifier,
)
from firelink.tasks.scheduler import setup_scheduler, shutdown_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    store: IncidentStore | None = None,
    push: PushNotifier | None = None,
    token_verifier: TokenVerifier | None = None,
    run_background_jobs: bool = True,
) -> FastAPI:
    """
    Build the application and its realtime components.

    One registry, router, broker and gateway per app instance. Collaborators
    can be swapped in for tests; by default they come from settings.
    """
    settings = settings or get_settings()
    use_sql = store is None and settings.storage_backend == "sql"
    if store is None:
        store = SQLIncidentStore(async_session_maker) if use_sql else MemoryIncidentStore()

    registry = ConnectionRegistry()
    router = ProximityRouter(registry, radius_km=settings.alert_radius_km)
    broker = SignalingBroker()
    gateway = Gateway(registry, router, broker, send_timeout=settings.send_timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        logger.info("Starting FireLink relay...")

        if use_sql:
            try:
                await init_db()
                await check_db_ready()
                logger.info("Database ready")
            except Exception as e:
                logger.error(f"Database not ready: {e}")
                raise

        scheduler = setup_scheduler(gateway, settings) if run_background_jobs else None

        yield

        # Shutdown
        shutdown_scheduler(scheduler)
        logger.info("FireLink relay shut down")

    app = FastAPI(
        title="FireLink Relay",
        description="Proximity emergency alerts and call signaling over WebSockets",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.gateway = gateway
    app.state.incident_service = IncidentService(
        store, router, push or LoggingPushNotifier(), radius_km=settings.alert_radius_km
    )
    app.state.token_verifier = token_verifier or StaticTokenVerifier(settings.responder_tokens)

    # Add rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unhandled exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(incidents_router, prefix=settings.api_v1_prefix)
    app.include_router(websocket_router)  # WebSocket at /ws and /webrtc

    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "FireLink Relay",
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/health",
            "websocket": "/ws",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "firelink.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
