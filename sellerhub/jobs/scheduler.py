"""
Payout scheduler.

Runs in-process next to the API on an AsyncIOScheduler:

- daily_payout_batch: auto payouts for every eligible seller, daily at
  PAYOUT_BATCH_HOUR:PAYOUT_BATCH_MINUTE
- weekly_payout_report: last week's payout totals, Mondays one hour later

Only one API worker should run with PAYOUT_SCHEDULER_ENABLED, jobs live in
memory and are not coordinated across processes.
"""

import logging

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from sellerhub.config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(
    jobstores={"default": MemoryJobStore()},
    executors={"default": AsyncIOExecutor()},
    job_defaults={
        "coalesce": True,
        "max_instances": 1,
        "misfire_grace_time": 300,
    },
    timezone=settings.SCHEDULER_TIMEZONE,
)


def _job_table() -> dict:
    from sellerhub.jobs import payout_jobs

    return {
        "daily_payout_batch": payout_jobs.run_daily_payout_batch,
        "weekly_payout_report": payout_jobs.run_weekly_payout_report,
    }


async def run_scheduled_job(job_name: str):
    """Entry point for every scheduled payout job; failures are logged, not raised."""
    try:
        result = await _job_table()[job_name]()
    except Exception as e:
        logger.error(f"Job '{job_name}' failed: {e}")
        return

    logger.info(f"Job '{job_name}' finished, {len(result.get('errors', []))} errors")


def _triggers() -> list[tuple[str, str, CronTrigger]]:
    batch_hour = settings.PAYOUT_BATCH_HOUR
    minute = settings.PAYOUT_BATCH_MINUTE
    return [
        (
            "daily_payout_batch",
            "Daily Seller Payout Batch",
            CronTrigger(hour=batch_hour, minute=minute),
        ),
        (
            "weekly_payout_report",
            "Weekly Payout Report",
            CronTrigger(day_of_week="mon", hour=(batch_hour + 1) % 24, minute=minute),
        ),
    ]


def register_jobs():
    for job_id, name, trigger in _triggers():
        scheduler.add_job(
            run_scheduled_job,
            trigger,
            args=[job_id],
            id=job_id,
            name=name,
            replace_existing=True,
        )


def start_scheduler():
    if scheduler.running:
        return

    register_jobs()
    scheduler.start()
    for job in scheduler.get_jobs():
        logger.info(f"Scheduled {job.name}, next run {job.next_run_time}")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Payout scheduler stopped")
