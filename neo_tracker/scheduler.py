import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from . import config
from .database import session_scope
from .services import FeedError, ingest_feed

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def ingest_once() -> int:
    """Refresh the catalog with approaches from today through the alert window."""
    today = datetime.now(timezone.utc).date()
    end = today + timedelta(days=config.NOTIFICATION_WINDOW_DAYS)
    with session_scope() as db:
        try:
            stored = ingest_feed(db, today, end)
        except FeedError:
            logger.warning("Scheduled ingest failed", exc_info=True)
            return 0
    return len(stored)


@scheduler.scheduled_job(IntervalTrigger(hours=config.INGEST_INTERVAL_HOURS))
async def scheduled_ingest():
    await ingest_once()
