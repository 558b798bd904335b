"""Background job scheduler for event counter refreshes."""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlmodel import Session

from eventsnap.aws.client import has_bucket_configured
from eventsnap.aws.storage import ObjectStore
from eventsnap.core.config import settings
from eventsnap.core.database import engine
from eventsnap.services.events import refresh_event_counters

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def counter_refresh_job():
    """Background photo counter refresh."""
    if not has_bucket_configured():
        logger.warning("No S3 bucket configured, skipping counter refresh")
        return
    try:
        with Session(engine) as session:
            stats = refresh_event_counters(session, ObjectStore())
            logger.info(f"Counter refresh completed: {stats}")
    except Exception as e:
        logger.error(f"Counter refresh failed: {e}")


def start_scheduler():
    """Start the background scheduler."""
    scheduler.add_job(
        counter_refresh_job,
        trigger=IntervalTrigger(minutes=settings.counter_refresh_minutes),
        id="event_counter_refresh",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started, refreshing counters every {settings.counter_refresh_minutes} minutes"
    )


def shutdown_scheduler():
    """Graceful shutdown."""
    scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")
