"""
Channel Metrics Models

Daily YouTube channel and GA4 property metrics per user, written by the
ingestion workers and read by the analytics service.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, ForeignKey, UniqueConstraint

from pulse.models.base import Base
from pulse.utils.helpers import utcnow


class YoutubeDailyMetric(Base):
    """YouTube channel totals for one day"""
    __tablename__ = "youtube_daily_metrics"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_youtube_daily_user_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)

    views = Column(Integer, default=0, nullable=False)
    subscribers_gained = Column(Integer, default=0, nullable=False)
    subscribers_lost = Column(Integer, default=0, nullable=False)
    estimated_minutes_watched = Column(Integer, default=0, nullable=False)
    average_view_duration_seconds = Column(Float, nullable=True)

    synced_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<YoutubeDailyMetric {self.user_id} {self.date} views={self.views}>"


class Ga4DailyMetric(Base):
    """GA4 property totals for one day"""
    __tablename__ = "ga4_daily_metrics"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_ga4_daily_user_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    property_id = Column(String, nullable=True)
    date = Column(Date, index=True, nullable=False)

    sessions = Column(Integer, default=0, nullable=False)
    new_users = Column(Integer, default=0, nullable=False)
    active_users = Column(Integer, default=0, nullable=False)
    bounce_rate = Column(Float, default=0.0, nullable=False)  # 0-1
    average_session_duration = Column(Float, default=0.0, nullable=False)  # seconds
    page_views = Column(Integer, default=0, nullable=False)

    synced_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Ga4DailyMetric {self.user_id} {self.date} sessions={self.sessions}>"
