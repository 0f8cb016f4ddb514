"""
APScheduler-based in-process trigger for the ping cycle.

Production deployments call GET /api/cron/ping from an external timer.
Setting RUN_PING_SCHEDULER=true runs the same cycle inside the API process
instead, which is handy for local development and single-box installs.
"""

import logging

import sentry_sdk
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from core.config import get_ping_interval_minutes, is_ping_scheduler_enabled

logger = logging.getLogger(__name__)

PING_JOB_ID = "ping_cycle"

_scheduler: AsyncIOScheduler | None = None


# =============================================================================
# Scheduler initialization and shutdown
# =============================================================================


def init_scheduler(interval_minutes: int | None = None) -> AsyncIOScheduler | None:
    """
    Start the in-process ping scheduler if enabled.

    Call this during app startup (in FastAPI lifespan).

    Args:
        interval_minutes: Override for PING_INTERVAL_MINUTES

    Returns:
        The running scheduler, or None if RUN_PING_SCHEDULER is not set
    """
    global _scheduler

    if _scheduler is not None:
        return _scheduler

    if not is_ping_scheduler_enabled():
        logger.info("In-process ping scheduler disabled (RUN_PING_SCHEDULER not set)")
        return None

    interval = interval_minutes or get_ping_interval_minutes()

    _scheduler = AsyncIOScheduler(
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,  # Never overlap runs within this process
            "misfire_grace_time": 60,
        },
    )
    _scheduler.add_job(
        run_scheduled_ping_cycle,
        trigger="interval",
        minutes=interval,
        id=PING_JOB_ID,
        replace_existing=True,
    )
    _scheduler.start()
    logger.info(f"Ping scheduler started (every {interval} minutes)")

    return _scheduler


def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler gracefully.

    Call this during app shutdown.
    """
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=True)
        _scheduler = None
        logger.info("Ping scheduler stopped")


# =============================================================================
# Job execution
# =============================================================================


async def run_scheduled_ping_cycle() -> None:
    """
    Job function called by APScheduler.

    Errors are logged and reported rather than raised, so one failed run
    does not unschedule the job.
    """
    # Import here to avoid circular imports
    from core.notifications.cron import run_ping_cycle

    try:
        summary = await run_ping_cycle()
    except Exception as e:
        logger.error(f"Scheduled ping cycle failed: {e}")
        sentry_sdk.capture_exception(e)
        return

    logger.info(
        f"Scheduled ping cycle done: groups={summary['groups_processed']}, "
        f"notified={summary['total_users_notified']}"
    )
