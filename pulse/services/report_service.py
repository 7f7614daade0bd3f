"""
Report Service

Orchestrates weekly/monthly PDF reports:

    create_report -> PENDING record, enqueue report:generate
    process_report_generation -> analytics, digest, PDF, storage, DONE
        (or FAILED with the error), enqueue report:send-email
    process_report_email -> notify the owner of a DONE report

A generation failure is stored on the report; the queue job itself still
completes normally.
"""
import asyncio
from datetime import datetime
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from pulse.config import get_settings
from pulse.models.base import SessionLocal
from pulse.models.report import Report, ReportStatus, ReportType
from pulse.services import correlation
from pulse.services.analytics_service import AnalyticsService, Period
from pulse.services.digest_service import DigestService, digest_input_from_overview, generate_heuristic_digest
from pulse.services.email_service import EmailService
from pulse.services.pdf_service import Kpi, PdfService, ReportPdfPayload
from pulse.services.queue_service import JobName, QueueService, queue as default_queue
from pulse.services.schedule_service import ScheduleService, due_report_types
from pulse.services.storage_service import LocalReportStorage
from pulse.services.user_service import get_or_create_user
from pulse.utils.cache import TTLCache, report_cache
from pulse.utils.helpers import today_utc, trailing_range, utcnow
from pulse.utils.logger import log

settings = get_settings()

PERIOD_DAYS = {
    ReportType.WEEKLY: 7,
    ReportType.MONTHLY: 30,
}

ANALYTICS_PERIOD = {
    ReportType.WEEKLY: Period.SEVEN_DAYS,
    ReportType.MONTHLY: Period.THIRTY_DAYS,
}


class ReportError(Exception):
    """Base class for report operation errors"""


class ReportNotFoundError(ReportError):
    pass


class ReportConflictError(ReportError):
    """The report is not in a state that allows the operation"""


def report_list_key(user_id: str, report_type: Optional[ReportType], status: Optional[ReportStatus]) -> str:
    type_part = report_type.value if report_type else "all"
    status_part = status.value if status else "all"
    return f"pulse:reports:{user_id}:{type_part}:{status_part}"


def report_list_pattern(user_id: str) -> str:
    return f"pulse:reports:{user_id}:*"


def _signed_pct(value: float) -> str:
    return f"{value:+.1f}%"


def build_kpis(overview: Dict, youtube: Dict, ga4: Optional[Dict]) -> List[Kpi]:
    """Fixed KPI set shown on every report; GA4 figures read N/A when missing"""
    series = overview.get('time_series') or []
    return [
        Kpi("YouTube views", f"{overview['youtube_views']:,}"),
        Kpi("YouTube views change", _signed_pct(overview['youtube_views_delta'])),
        Kpi("Subscribers gained", f"{overview['subscribers_gained']:,}"),
        Kpi("Average retention", f"{youtube['average_retention']:.1f}%"),
        Kpi("Web sessions", f"{overview['web_sessions']:,}"),
        Kpi("Web sessions change", _signed_pct(overview['web_sessions_delta'])),
        Kpi("New users", f"{ga4['new_users']:,}" if ga4 else "N/A"),
        Kpi("Pulse Score", f"{overview['pulse_score']} ({_signed_pct(overview['pulse_score_delta'])})"),
        Kpi("YouTube / web correlation", f"{correlation.compute(series):.2f}"),
    ]


class ReportService:
    """Service for report creation, generation and delivery"""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        queue: Optional[QueueService] = None,
        analytics_factory: Callable[[Session], AnalyticsService] = AnalyticsService,
        pdf: Optional[PdfService] = None,
        storage: Optional[LocalReportStorage] = None,
        email: Optional[EmailService] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.session_factory = session_factory
        self.queue = queue if queue is not None else default_queue
        self.analytics_factory = analytics_factory
        self.pdf = pdf or PdfService.from_settings()
        self.storage = storage or LocalReportStorage(settings.report_storage_dir)
        self.email = email or EmailService(session_factory=session_factory)
        self.cache = cache if cache is not None else report_cache

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_reports(self, user_id: str, report_type: Optional[ReportType] = None,
                           status: Optional[ReportStatus] = None) -> List[Dict]:
        """Newest first; cached per (user, type filter, status filter)"""
        async def load():
            db = self.session_factory()
            try:
                query = db.query(Report).filter(Report.user_id == user_id)
                if report_type:
                    query = query.filter(Report.type == report_type)
                if status:
                    query = query.filter(Report.status == status)
                return [r.to_dict() for r in query.order_by(Report.created_at.desc()).all()]
            finally:
                db.close()

        return await self.cache.wrap(
            report_list_key(user_id, report_type, status),
            settings.report_list_cache_ttl_seconds,
            load,
        )

    def get_download(self, report_id: str, user_id: str) -> Tuple[str, bytes]:
        """(file name, PDF bytes) for the owner's finished report"""
        db = self.session_factory()
        try:
            report = self._get_owned(db, report_id, user_id)
            if report.status != ReportStatus.DONE or not report.pdf_url:
                raise ReportConflictError(f"Report {report_id} has no PDF available")
            file_name = f"pulse-{report.type.value.lower()}-{report.period_end.isoformat()}.pdf"
            pdf_url = report.pdf_url
        finally:
            db.close()

        try:
            return file_name, self.storage.read(pdf_url)
        except FileNotFoundError:
            raise ReportNotFoundError(f"PDF file for report {report_id} is missing")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_report(self, user_id: str, report_type: ReportType) -> Dict:
        """Persist a PENDING report over the trailing period and queue its generation"""
        report_type = ReportType(report_type)
        period_start, period_end = trailing_range(PERIOD_DAYS[report_type], today_utc())

        db = self.session_factory()
        try:
            get_or_create_user(db, user_id)
            report = Report(
                user_id=user_id,
                type=report_type,
                status=ReportStatus.PENDING,
                period_start=period_start,
                period_end=period_end,
            )
            db.add(report)
            db.commit()
            db.refresh(report)
            result = report.to_dict()
        finally:
            db.close()

        self.invalidate_user_cache(user_id)
        self.queue.enqueue(JobName.GENERATE_REPORT, {'report_id': result['id'], 'user_id': user_id})
        log.info(f"Report {result['id']} ({report_type.value}) created for user {user_id}")
        return result

    def retry_report(self, report_id: str, user_id: str) -> Dict:
        """Reset a settled report to PENDING and queue generation again"""
        db = self.session_factory()
        try:
            report = self._get_owned(db, report_id, user_id)
            if report.status in (ReportStatus.PENDING, ReportStatus.PROCESSING):
                raise ReportConflictError(
                    f"Report {report_id} is already {report.status.value.lower()} and cannot be retried"
                )

            report.status = ReportStatus.PENDING
            report.error_msg = None
            report.pdf_url = None
            db.commit()
            db.refresh(report)
            result = report.to_dict()
        finally:
            db.close()

        self.invalidate_user_cache(user_id)
        self.queue.enqueue(JobName.GENERATE_REPORT, {'report_id': report_id, 'user_id': user_id})
        log.info(f"Report {report_id} queued for retry")
        return result

    # ------------------------------------------------------------------
    # Job handlers
    # ------------------------------------------------------------------

    async def process_report_generation(self, payload: Dict) -> None:
        report_id = payload['report_id']
        user_id = payload['user_id']

        db = self.session_factory()
        try:
            report = db.query(Report).filter(Report.id == report_id).first()
            if report is None or report.user_id != user_id:
                log.warning(f"Skipping generation for unknown or foreign report {report_id}")
                return

            report.status = ReportStatus.PROCESSING
            db.commit()
            self.invalidate_user_cache(user_id)

            try:
                digest, pdf_url = await self._generate(db, report)
                report.status = ReportStatus.DONE
                report.ai_digest = digest
                report.pdf_url = pdf_url
                report.error_msg = None
                db.commit()
            except Exception as e:
                db.rollback()
                message = str(e) or type(e).__name__
                report.status = ReportStatus.FAILED
                report.error_msg = message
                db.commit()
                self.invalidate_user_cache(user_id)
                log.error(f"Report {report_id} generation failed: {message}")
                return
        finally:
            db.close()

        self.invalidate_user_cache(user_id)
        log.info(f"Report {report_id} generated")
        self.queue.enqueue(JobName.SEND_REPORT, {'report_id': report_id, 'user_id': user_id})

    async def process_report_email(self, payload: Dict) -> None:
        report_id = payload['report_id']
        user_id = payload['user_id']

        db = self.session_factory()
        try:
            report = db.query(Report).filter(Report.id == report_id).first()
            if report is None or report.user_id != user_id or report.status != ReportStatus.DONE:
                log.warning(f"Skipping email for report {report_id}: not a finished report of user {user_id}")
                return
            report_type = report.type
        finally:
            db.close()

        await self.email.send_report_ready_email(user_id, report_id, report_type)

    async def run_due_schedules(self, now: Optional[datetime] = None) -> int:
        """Create every report whose schedule is due; returns how many were created"""
        now = now or utcnow()
        created = 0

        db = self.session_factory()
        try:
            schedules = ScheduleService(db)
            for schedule in schedules.list_enabled():
                for report_type in due_report_types(schedule, now):
                    schedules.mark_run(schedule, report_type, now.date())
                    self.create_report(schedule.user_id, report_type)
                    created += 1
        finally:
            db.close()

        if created:
            log.info(f"Scheduled run created {created} report(s)")
        return created

    def invalidate_user_cache(self, user_id: str) -> None:
        self.cache.delete_pattern(report_list_pattern(user_id))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _generate(self, db: Session, report: Report) -> Tuple[str, str]:
        """Analytics, digest and PDF for the report; returns (digest, pdf location)"""
        analytics = self.analytics_factory(db)
        period = ANALYTICS_PERIOD[report.type]

        overview, youtube, ga4 = await asyncio.gather(
            analytics.get_overview(period, report.user_id, report.period_end),
            analytics.get_youtube_stats(period, report.user_id, report.period_end),
            self._optional_ga4(analytics, period, report.user_id, report.period_end),
        )

        digest = DigestService(db).latest_standing_digest(report.user_id)
        if not digest:
            digest = generate_heuristic_digest(digest_input_from_overview(report.type, overview))

        label = "Weekly" if report.type == ReportType.WEEKLY else "Monthly"
        payload = ReportPdfPayload(
            title=f"Pulse {label} Report",
            period_label=f"{report.period_start.isoformat()} to {report.period_end.isoformat()}",
            generated_at=utcnow().strftime("%Y-%m-%d %H:%M UTC"),
            kpis=build_kpis(overview, youtube, ga4),
            digest=digest,
            series=overview.get('time_series') or [],
        )

        content = await self.pdf.render(payload)
        return digest, self.storage.save(report.id, content)

    @staticmethod
    async def _optional_ga4(analytics: AnalyticsService, period: Period, user_id: str, end_date) -> Optional[Dict]:
        try:
            return await analytics.get_ga4_stats(period, user_id, end_date)
        except Exception as e:
            log.info(f"GA4 data unavailable for user {user_id}, continuing without it: {e}")
            return None

    @staticmethod
    def _get_owned(db: Session, report_id: str, user_id: str) -> Report:
        report = db.query(Report).filter(Report.id == report_id, Report.user_id == user_id).first()
        if report is None:
            raise ReportNotFoundError(f"Report {report_id} not found")
        return report


@lru_cache()
def get_report_service() -> ReportService:
    """Process-wide report service bound to the global queue"""
    return ReportService()
