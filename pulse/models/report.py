"""
Report Models

Generated PDF reports, per-user report schedules, standing AI digests and
the users that own them.
"""
import enum
import uuid

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Text, Enum, ForeignKey

from pulse.models.base import Base
from pulse.utils.helpers import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class ReportType(str, enum.Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class ReportStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    FAILED = "FAILED"


class User(Base):
    """Workspace user (owned by the auth layer, read here for email delivery)"""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.id} {self.email}>"


class Report(Base):
    """
    A weekly or monthly PDF report

    Lifecycle: PENDING -> PROCESSING -> DONE | FAILED. A retry moves a
    settled report back to PENDING.
    """
    __tablename__ = "reports"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)

    type = Column(Enum(ReportType), nullable=False, index=True)
    status = Column(Enum(ReportStatus), nullable=False, default=ReportStatus.PENDING, index=True)

    # Covered period (inclusive UTC days)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)

    # Outputs
    pdf_url = Column(String, nullable=True)
    ai_digest = Column(Text, nullable=True)
    error_msg = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type.value,
            'status': self.status.value,
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'pdf_url': self.pdf_url,
            'ai_digest': self.ai_digest,
            'error_msg': self.error_msg,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    def __repr__(self):
        return f"<Report {self.id} {self.type.value} {self.status.value}>"


class ReportSchedule(Base):
    """Automatic report generation settings (one row per user)"""
    __tablename__ = "report_schedules"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)

    enabled = Column(Boolean, default=False, nullable=False)
    day_of_week = Column(Integer, default=0, nullable=False)  # 0 = Monday
    day_of_month = Column(Integer, default=1, nullable=False)  # clamped to month length
    hour_utc = Column(Integer, default=8, nullable=False)
    minute_utc = Column(Integer, default=0, nullable=False)

    # Once-per-day guards
    last_weekly_run_on = Column(Date, nullable=True)
    last_monthly_run_on = Column(Date, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            'enabled': self.enabled,
            'day_of_week': self.day_of_week,
            'day_of_month': self.day_of_month,
            'hour_utc': self.hour_utc,
            'minute_utc': self.minute_utc,
            'last_weekly_run_on': self.last_weekly_run_on.isoformat() if self.last_weekly_run_on else None,
            'last_monthly_run_on': self.last_monthly_run_on.isoformat() if self.last_monthly_run_on else None,
        }


class AiDigest(Base):
    """Standing narrative digest; the newest non-empty one is reused by reports"""
    __tablename__ = "ai_digests"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    period = Column(String, nullable=False, default="7d")
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AiDigest {self.user_id} {self.created_at}>"
