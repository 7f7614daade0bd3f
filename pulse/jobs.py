"""
Queue handler wiring

Binds every job name to its handler on a QueueService.
"""
from typing import Dict, Optional

from pulse.models.base import SessionLocal
from pulse.models.report import ReportType
from pulse.services.analytics_service import AnalyticsService, Period
from pulse.services.digest_service import DigestService, digest_input_from_overview, generate_heuristic_digest
from pulse.services.queue_service import JobName, QueueService, queue as default_queue
from pulse.services.report_service import ReportService, get_report_service
from pulse.utils.logger import log


async def generate_standing_digest(payload: Dict, session_factory=SessionLocal) -> None:
    """digest:generate - refresh the user's standing digest from the 7-day overview"""
    user_id = payload['user_id']
    db = session_factory()
    try:
        overview = await AnalyticsService(db).get_overview(Period.SEVEN_DAYS, user_id)
        content = generate_heuristic_digest(digest_input_from_overview(ReportType.WEEKLY, overview))
        DigestService(db).store_standing_digest(user_id, content, period=Period.SEVEN_DAYS.value)
    finally:
        db.close()


async def refresh_user_analytics(payload: Dict, session_factory=SessionLocal) -> None:
    """ingest:user - new metrics landed for the user, drop their cached analytics"""
    user_id = payload['user_id']
    db = session_factory()
    try:
        removed = AnalyticsService(db).invalidate_user(user_id)
    finally:
        db.close()
    log.info(f"Ingestion finished for user {user_id}, cleared {removed} cached analytics entries")


def register_handlers(queue: Optional[QueueService] = None, reports: Optional[ReportService] = None) -> QueueService:
    queue = queue if queue is not None else default_queue
    reports = reports or get_report_service()

    queue.register(JobName.GENERATE_REPORT, reports.process_report_generation)
    queue.register(JobName.SEND_REPORT, reports.process_report_email)
    queue.register(JobName.GENERATE_DIGEST, generate_standing_digest)
    queue.register(JobName.INGEST_USER, refresh_user_analytics)

    log.info("Queue handlers registered")
    return queue
