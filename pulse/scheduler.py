"""
Scheduler for automated reports and digest refreshes

Uses APScheduler on the application's event loop. All times are UTC.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from datetime import timezone

from pulse.config import get_settings
from pulse.models.base import SessionLocal
from pulse.services.queue_service import JobName, queue
from pulse.services.report_service import get_report_service
from pulse.services.user_service import list_user_ids
from pulse.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler(timezone=timezone.utc)


async def run_report_schedules():
    """Create reports for every schedule that is due"""
    try:
        created = await get_report_service().run_due_schedules()
        log.debug(f"Report schedule check done ({created} created)")
    except Exception as e:
        log.error(f"Report schedule check failed: {str(e)}")


async def enqueue_standing_digests():
    """Queue a digest refresh for every user (daily)"""
    db = SessionLocal()
    try:
        user_ids = list_user_ids(db)
    finally:
        db.close()

    for user_id in user_ids:
        queue.enqueue(JobName.GENERATE_DIGEST, {'user_id': user_id})
    log.info(f"Queued standing digest refresh for {len(user_ids)} user(s)")


def setup_scheduler():
    """
    Register the recurring jobs.

    - Report schedules: every report_schedule_interval_minutes
    - Standing digests: daily at digest_refresh_hour_utc:00
    """
    scheduler.add_job(
        run_report_schedules,
        trigger=IntervalTrigger(minutes=settings.report_schedule_interval_minutes),
        id='report_schedules',
        name='Scheduled Report Generation',
        replace_existing=True,
        max_instances=1
    )

    scheduler.add_job(
        enqueue_standing_digests,
        trigger=CronTrigger(hour=settings.digest_refresh_hour_utc, minute=0, timezone=timezone.utc),
        id='standing_digests',
        name='Daily Standing Digest Refresh',
        replace_existing=True,
        max_instances=1
    )

    log.info("Scheduler configured with all jobs")


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        log.info("Scheduler stopped")
