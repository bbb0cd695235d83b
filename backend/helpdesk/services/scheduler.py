"""
Background Job Scheduler.

WHAT: Configures and manages APScheduler for background tasks.

WHY: Resolved tickets are closed automatically after AUTO_CLOSE_DAYS.
Nothing in a request triggers that, so it runs on an interval.

HOW: Uses APScheduler's AsyncIOScheduler on the application's event
loop with an in-memory job store. Started and stopped from the app's
startup and shutdown events when SCHEDULER_ENABLED is true.

Example:
    from helpdesk.services.scheduler import start_scheduler, shutdown_scheduler

    await start_scheduler()
    ...
    await shutdown_scheduler()
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.interval import IntervalTrigger

from helpdesk.core.config import settings
from helpdesk.services.auto_close_service import get_auto_close_service


logger = logging.getLogger(__name__)

AUTO_CLOSE_JOB_ID = "ticket_auto_close"

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the global scheduler instance."""
    return _scheduler


async def start_scheduler() -> None:
    """
    Start the background job scheduler.

    HOW:
    1. Creates AsyncIOScheduler with memory job store
    2. Registers the auto-close job
    3. Starts the scheduler

    Note: Called from the app startup event.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return

    _scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults={
            "coalesce": True,  # Combine multiple missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
        timezone="UTC",
    )

    _register_auto_close_job()

    _scheduler.start()
    logger.info(
        f"Scheduler started with auto-close every {settings.AUTO_CLOSE_INTERVAL_MINUTES} minutes"
    )


def _register_auto_close_job() -> None:
    """Schedule the auto-close sweep."""
    if _scheduler is None:
        logger.error("Cannot register job: scheduler not initialized")
        return

    _scheduler.add_job(
        func=get_auto_close_service().run,
        trigger=IntervalTrigger(minutes=settings.AUTO_CLOSE_INTERVAL_MINUTES),
        id=AUTO_CLOSE_JOB_ID,
        name="Auto-close resolved tickets",
        replace_existing=True,
    )

    logger.info(
        f"Registered auto-close job (interval: {settings.AUTO_CLOSE_INTERVAL_MINUTES}m)"
    )


async def shutdown_scheduler() -> None:
    """
    Shut down the background job scheduler.

    Note: Called from the app shutdown event.
    """
    global _scheduler

    if _scheduler is None:
        logger.info("Scheduler not running")
        return

    if not _scheduler.running:
        logger.info("Scheduler already stopped")
        _scheduler = None
        return

    logger.info("Shutting down scheduler...")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler shut down successfully")


def get_scheduler_status() -> dict:
    """
    Get scheduler status information for the health endpoint.

    Returns:
        Dict with scheduler status and job details
    """
    if _scheduler is None:
        return {
            "running": False,
            "jobs": [],
            "message": "Scheduler not initialized",
        }

    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })

    return {
        "running": _scheduler.running,
        "jobs": jobs,
        "message": "Scheduler is running" if _scheduler.running else "Scheduler is paused",
    }
