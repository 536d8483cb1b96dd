"""Background liveness sweep for realtime connections."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from firelink.config import Settings
from firelink.realtime.gateway import Gateway

logger = logging.getLogger(__name__)


async def prune_stale_connections_job(gateway: Gateway, max_idle_seconds: float) -> None:
    """Background job closing sockets that stopped sending heartbeats."""
    try:
        pruned = await gateway.prune_stale(max_idle_seconds)
        if pruned:
            logger.info(f"Pruned {pruned} idle connections")
    except Exception as e:
        logger.error(f"Liveness sweep failed: {e}", exc_info=True)


def setup_scheduler(gateway: Gateway, settings: Settings) -> AsyncIOScheduler:
    """Set up and start the background task scheduler."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        prune_stale_connections_job,
        trigger=IntervalTrigger(seconds=settings.liveness_sweep_seconds),
        kwargs={
            "gateway": gateway,
            "max_idle_seconds": settings.heartbeat_timeout_seconds,
        },
        id="prune_stale_connections",
        name="Close idle realtime connections",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")

    return scheduler


def shutdown_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """Shut down the scheduler gracefully."""
    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
