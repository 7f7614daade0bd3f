"""
Report Schedule Service

Per-user automatic report settings and the "is a report due now?" rule.
"""
import calendar
from datetime import datetime
from typing import Dict, List

from sqlalchemy.orm import Session

from pulse.models.report import ReportSchedule, ReportType
from pulse.services.user_service import get_or_create_user
from pulse.utils.logger import log

SCHEDULE_FIELDS = ('enabled', 'day_of_week', 'day_of_month', 'hour_utc', 'minute_utc')


def effective_day_of_month(day_of_month: int, year: int, month: int) -> int:
    """Clamp a configured day to the month's length (31 -> 28 in February)"""
    last_day = calendar.monthrange(year, month)[1]
    return max(1, min(day_of_month, last_day))


def due_report_types(schedule: ReportSchedule, now: datetime) -> List[ReportType]:
    """
    Report types that should be generated for this schedule at `now` (UTC)

    A type is due once per day, on its configured day, after its
    configured time.
    """
    if not schedule.enabled:
        return []
    if (now.hour, now.minute) < (schedule.hour_utc, schedule.minute_utc):
        return []

    today = now.date()
    due = []
    if now.weekday() == schedule.day_of_week and schedule.last_weekly_run_on != today:
        due.append(ReportType.WEEKLY)
    if (today.day == effective_day_of_month(schedule.day_of_month, today.year, today.month)
            and schedule.last_monthly_run_on != today):
        due.append(ReportType.MONTHLY)
    return due


class ScheduleService:
    """Service for report schedules"""

    def __init__(self, db: Session):
        self.db = db

    def get_schedule(self, user_id: str) -> ReportSchedule:
        """The user's schedule, created disabled with defaults on first access"""
        schedule = self.db.query(ReportSchedule).filter(ReportSchedule.user_id == user_id).first()
        if schedule is None:
            get_or_create_user(self.db, user_id)
            schedule = ReportSchedule(
                user_id=user_id, enabled=False, day_of_week=0,
                day_of_month=1, hour_utc=8, minute_utc=0,
            )
            self.db.add(schedule)
            self.db.commit()
            self.db.refresh(schedule)
        return schedule

    def update_schedule(self, user_id: str, changes: Dict) -> ReportSchedule:
        schedule = self.get_schedule(user_id)
        for field_name in SCHEDULE_FIELDS:
            if changes.get(field_name) is not None:
                setattr(schedule, field_name, changes[field_name])
        self.db.commit()
        self.db.refresh(schedule)
        log.info(f"Report schedule updated for user {user_id}: {schedule.to_dict()}")
        return schedule

    def list_enabled(self) -> List[ReportSchedule]:
        return self.db.query(ReportSchedule).filter(ReportSchedule.enabled.is_(True)).all()

    def mark_run(self, schedule: ReportSchedule, report_type: ReportType, run_on) -> None:
        if report_type == ReportType.WEEKLY:
            schedule.last_weekly_run_on = run_on
        else:
            schedule.last_monthly_run_on = run_on
        self.db.commit()
