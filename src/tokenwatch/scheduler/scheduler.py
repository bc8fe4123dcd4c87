"""APScheduler singleton for tokenwatch.

All polling loops share one AsyncIOScheduler; each loop owns one
interval job on it.

Usage:
    from tokenwatch.scheduler.scheduler import get_scheduler, start_scheduler

    # On service startup
    await start_scheduler()

    # On service shutdown
    await shutdown_scheduler()
"""

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

log = structlog.get_logger(__name__)

# Singleton scheduler instance
_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler singleton.

    Returns:
        The AsyncIOScheduler singleton instance.

    Note:
        The scheduler is not automatically started. Jobs added before
        start() stay pending and are armed when it starts.
    """
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
        log.debug("scheduler_created")
    return _scheduler


async def start_scheduler() -> None:
    """Start the scheduler.

    Safe to call multiple times - will only start if not running.
    """
    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        log.info("scheduler_started")


async def shutdown_scheduler() -> None:
    """Shutdown the scheduler.

    Clears the singleton to allow clean restart. In-flight detection
    cycles are not awaited; they run to completion on the event loop.
    """
    global _scheduler
    if _scheduler is not None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            log.info("scheduler_shutdown")
        _scheduler = None
