"""
APScheduler setup for the payout cron.

A single job: process ready payouts daily at 9:00 AM, Asia/Manila. The job
store is in-memory and the job never overlaps itself within one process.
"""
import logging
from typing import Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import PAYOUT_CRON, PAYOUT_TIMEZONE
from .payouts import HttpPayoutService, PayoutService, run_daily_payouts

logger = logging.getLogger(__name__)

PAYOUT_JOB_ID = "daily_payouts"

job_defaults = {
    "coalesce": True,  # Combine missed runs into one
    "max_instances": 1,
    "misfire_grace_time": 60,
}


def create_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults=job_defaults,
        timezone=PAYOUT_TIMEZONE,
    )


scheduler = create_scheduler()


def add_payout_job(sched: AsyncIOScheduler, service: PayoutService):
    return sched.add_job(
        run_daily_payouts,
        CronTrigger.from_crontab(PAYOUT_CRON, timezone=PAYOUT_TIMEZONE),
        args=[service],
        id=PAYOUT_JOB_ID,
        name="Daily Payout Processing",
        replace_existing=True,
    )


def start_scheduler(service: Optional[PayoutService] = None, sched: AsyncIOScheduler = scheduler):
    """Register the payout job and start the scheduler. Must run inside the event loop."""
    if sched.running:
        return sched

    add_payout_job(sched, service or HttpPayoutService())
    sched.start()

    job = sched.get_job(PAYOUT_JOB_ID)
    logger.info("Payout cron job initialized")
    logger.info("   Schedule: Daily at 9:00 AM (%s)", PAYOUT_TIMEZONE)
    logger.info("   Next run: %s", job.next_run_time if job else None)
    return sched


def shutdown_scheduler(sched: AsyncIOScheduler = scheduler):
    if sched.running:
        sched.shutdown(wait=True)
        logger.info("Payout scheduler stopped")


def get_job_status(sched: AsyncIOScheduler = scheduler) -> dict:
    jobs = []
    for job in sched.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run_time": next_run.isoformat() if next_run else None,
            }
        )
    return {"running": sched.running, "jobs": jobs}
