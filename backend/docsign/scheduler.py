from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from docsign.database import db_session
from docsign.services.maintenance_service import purge_signing_sessions
from docsign.config import settings
import logging

logger = logging.getLogger(__name__)


async def purge_expired_signing_sessions():
    """Background task to remove signing sessions past the retention window"""
    try:
        with db_session() as db:
            deleted = purge_signing_sessions(db)
        logger.info(f"Signing session purge completed: {deleted} removed")
    except Exception as e:
        logger.error(f"Signing session purge failed: {e}", exc_info=True)


def start_scheduler():
    """Start the APScheduler for periodic maintenance"""
    scheduler = AsyncIOScheduler()
    interval_hours = settings.signing_session_purge_interval_hours

    if settings.signing_session_purge_enabled:
        if interval_hours is None or interval_hours <= 0:
            logger.warning(
                "SIGNING_SESSION_PURGE_INTERVAL_HOURS must be > 0; "
                "falling back to daily purge"
            )
            interval_hours = 24

        scheduler.add_job(
            purge_expired_signing_sessions,
            trigger=IntervalTrigger(hours=interval_hours),
            id="signing_session_purge",
            name="Purge expired signing sessions",
            replace_existing=True,
        )
    else:
        logger.info("Signing session purge is disabled via SIGNING_SESSION_PURGE_ENABLED")

    scheduler.start()
    if settings.signing_session_purge_enabled:
        logger.info(
            f"Scheduler started - signing session purge every {interval_hours} hour(s), "
            f"retention {settings.signing_session_max_age_days} day(s)"
        )
    else:
        logger.info("Scheduler started - no maintenance jobs enabled")
    return scheduler
