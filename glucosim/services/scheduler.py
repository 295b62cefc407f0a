"""Background job scheduler.

APScheduler-based scheduler for the live demo feed.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from glucosim.config import demo_settings
from glucosim.database import get_session_maker
from glucosim.logging_config import get_logger
from glucosim.services.demo_data import get_demo_service
from glucosim.services.demo_storage import SqlAlchemyDemoStore, StorageError

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncIOScheduler | None = None

DEMO_ENTRY_JOB_ID = "demo_entry"


async def generate_demo_entry() -> None:
    """Append one live reading for the demo patient.

    Failures are logged and the next run tries again; a regeneration in
    progress is left alone so the live walk does not interleave with it.
    """
    service = get_demo_service()
    if not service.is_running:
        logger.debug("Demo service not running, skipping live entry", state=str(service.state))
        return
    if service.is_regenerating:
        logger.debug("Demo regeneration in progress, skipping live entry")
        return

    try:
        async with get_session_maker()() as db:
            await service.generate_and_save_entry(SqlAlchemyDemoStore(db))
    except StorageError as e:
        logger.error("Failed to store live demo entry", error=str(e))


def start_scheduler() -> AsyncIOScheduler:
    """Start the background job scheduler.

    Returns:
        The started scheduler instance
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already running")
        return scheduler

    scheduler = AsyncIOScheduler()

    if demo_settings.enabled:
        scheduler.add_job(
            generate_demo_entry,
            trigger=IntervalTrigger(minutes=demo_settings.interval_minutes),
            id=DEMO_ENTRY_JOB_ID,
            name="Demo Live Glucose Entry",
            replace_existing=True,
            max_instances=1,
        )
        logger.info(
            "Scheduled demo entry job",
            interval_minutes=demo_settings.interval_minutes,
        )

    scheduler.start()
    logger.info("Background scheduler started")

    return scheduler


def stop_scheduler() -> None:
    """Stop the background job scheduler."""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")


def get_scheduler() -> AsyncIOScheduler | None:
    """Get the current scheduler instance, or None if not started."""
    return scheduler


@asynccontextmanager
async def scheduler_lifespan() -> AsyncGenerator[None, None]:
    """Start the scheduler for the duration of the block."""
    start_scheduler()
    try:
        yield
    finally:
        stop_scheduler()
