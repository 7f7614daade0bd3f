"""
Analytics Service

Period overviews, per-channel stats and cross-channel correlation built
from the daily YouTube and GA4 metric tables.
Answers: "How did my channels do this period, and do they move together?"
"""
import enum
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from pulse.config import get_settings
from pulse.models.metrics import YoutubeDailyMetric, Ga4DailyMetric
from pulse.services import correlation, pulse_score
from pulse.services.correlation import TimeSeriesPoint
from pulse.services.pulse_score import YouTubeMetrics, Ga4Metrics
from pulse.utils.cache import TTLCache, analytics_cache
from pulse.utils.helpers import average, compute_delta, list_dates, previous_range, trailing_range
from pulse.utils.logger import log

settings = get_settings()

# Reference video length when a video's own duration is unknown
DEFAULT_VIDEO_DURATION_SECONDS = 420
MIN_RETENTION_PCT = 5.0
MAX_RETENTION_PCT = 95.0


class Period(str, enum.Enum):
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"
    NINETY_DAYS = "90d"


DAYS_BY_PERIOD = {
    Period.SEVEN_DAYS: 7,
    Period.THIRTY_DAYS: 30,
    Period.NINETY_DAYS: 90,
}


class Ga4NotConnectedError(Exception):
    """The user has no GA4 property data at all"""


def compute_retention_rate(average_view_duration_seconds: float,
                           duration_seconds: float = DEFAULT_VIDEO_DURATION_SECONDS) -> float:
    """Share of a video watched on average, clamped to [5, 95] percent"""
    safe_duration = duration_seconds if duration_seconds > 0 else DEFAULT_VIDEO_DURATION_SECONDS
    retention = average_view_duration_seconds / safe_duration * 100
    return round(max(MIN_RETENTION_PCT, min(MAX_RETENTION_PCT, retention)), 1)


def analytics_cache_pattern(user_id: str) -> str:
    return f"pulse:analytics:{user_id}:*"


class AnalyticsService:
    """Service for per-user channel analytics"""

    def __init__(self, db: Session, cache: Optional[TTLCache] = None):
        self.db = db
        self.cache = cache if cache is not None else analytics_cache
        self.cache_ttl = settings.analytics_cache_ttl_seconds
        self.max_lag_days = settings.correlation_max_lag_days

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_overview(self, period: Period, user_id: str, end_date: Optional[date] = None) -> Dict:
        key = self._cache_key(user_id, "overview", period, end_date)
        return await self.cache.wrap(key, self.cache_ttl, lambda: self._build_overview(period, user_id, end_date))

    async def get_youtube_stats(self, period: Period, user_id: str, end_date: Optional[date] = None) -> Dict:
        key = self._cache_key(user_id, "youtube", period, end_date)
        return await self.cache.wrap(key, self.cache_ttl, lambda: self._build_youtube_stats(period, user_id, end_date))

    async def get_ga4_stats(self, period: Period, user_id: str, end_date: Optional[date] = None) -> Dict:
        """Raises Ga4NotConnectedError when the user has no GA4 data"""
        key = self._cache_key(user_id, "ga4", period, end_date)
        return await self.cache.wrap(key, self.cache_ttl, lambda: self._build_ga4_stats(period, user_id, end_date))

    async def get_correlations(self, period: Period, user_id: str, end_date: Optional[date] = None) -> Dict:
        key = self._cache_key(user_id, "correlations", period, end_date)
        return await self.cache.wrap(key, self.cache_ttl, lambda: self._build_correlations(period, user_id, end_date))

    def invalidate_user(self, user_id: str) -> int:
        return self.cache.delete_pattern(analytics_cache_pattern(user_id))

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    async def _build_overview(self, period: Period, user_id: str, end_date: Optional[date]) -> Dict:
        current, previous = self._ranges(period, end_date)

        youtube_current = self._fetch_youtube_daily(user_id, *current)
        youtube_previous = self._fetch_youtube_daily(user_id, *previous)
        ga_current = self._fetch_ga4_daily(user_id, *current)
        ga_previous = self._fetch_ga4_daily(user_id, *previous)

        youtube_views = sum(row.views for row in youtube_current)
        previous_youtube_views = sum(row.views for row in youtube_previous)
        web_sessions = sum(row.sessions for row in ga_current)
        previous_web_sessions = sum(row.sessions for row in ga_previous)
        subscribers_gained = sum(row.subscribers_gained for row in youtube_current)

        score = pulse_score.compute(self._youtube_metrics(youtube_current), self._ga4_metrics(ga_current))
        previous_score = pulse_score.compute(self._youtube_metrics(youtube_previous), self._ga4_metrics(ga_previous))

        log.debug(f"Overview {period.value} for {user_id}: pulse={score} (prev {previous_score})")

        return {
            'period': period.value,
            'period_start': current[0].isoformat(),
            'period_end': current[1].isoformat(),
            'youtube_views': youtube_views,
            'youtube_views_delta': compute_delta(youtube_views, previous_youtube_views),
            'subscribers_gained': subscribers_gained,
            'watch_time_minutes': sum(row.estimated_minutes_watched for row in youtube_current),
            'web_sessions': web_sessions,
            'web_sessions_delta': compute_delta(web_sessions, previous_web_sessions),
            'pulse_score': score,
            'pulse_score_delta': compute_delta(score, previous_score),
            'time_series': self._combined_series(current, youtube_current, ga_current),
        }

    async def _build_youtube_stats(self, period: Period, user_id: str, end_date: Optional[date]) -> Dict:
        current, previous = self._ranges(period, end_date)

        rows = self._fetch_youtube_daily(user_id, *current)
        previous_rows = self._fetch_youtube_daily(user_id, *previous)

        views = sum(row.views for row in rows)
        average_retention = self._average_retention(rows)
        previous_retention = self._average_retention(previous_rows)
        by_date = {row.date: row for row in rows}

        return {
            'period': period.value,
            'views': views,
            'views_delta': compute_delta(views, sum(row.views for row in previous_rows)),
            'subscribers_gained': sum(row.subscribers_gained for row in rows),
            'subscribers_lost': sum(row.subscribers_lost for row in rows),
            'watch_time_minutes': sum(row.estimated_minutes_watched for row in rows),
            'average_retention': average_retention,
            'average_retention_delta': compute_delta(average_retention, previous_retention),
            'views_series': [
                {'date': day.isoformat(), 'views': by_date[day].views if day in by_date else 0}
                for day in list_dates(*current)
            ],
        }

    async def _build_ga4_stats(self, period: Period, user_id: str, end_date: Optional[date]) -> Dict:
        if not self._has_ga4(user_id):
            raise Ga4NotConnectedError(f"No GA4 property connected for user {user_id}")

        current, previous = self._ranges(period, end_date)
        rows = self._fetch_ga4_daily(user_id, *current)
        previous_rows = self._fetch_ga4_daily(user_id, *previous)

        sessions = sum(row.sessions for row in rows)
        new_users = sum(row.new_users for row in rows)
        bounce_rate = average([row.bounce_rate for row in rows])
        session_duration = average([row.average_session_duration for row in rows])
        by_date = {row.date: row for row in rows}
        property_ids = {row.property_id for row in rows if row.property_id}

        return {
            'period': period.value,
            'property_id': next(iter(sorted(property_ids)), None),
            'sessions': sessions,
            'sessions_delta': compute_delta(sessions, sum(row.sessions for row in previous_rows)),
            'new_users': new_users,
            'new_users_delta': compute_delta(new_users, sum(row.new_users for row in previous_rows)),
            'bounce_rate': round(bounce_rate, 4),
            'bounce_rate_delta': compute_delta(bounce_rate, average([row.bounce_rate for row in previous_rows])),
            'average_session_duration': round(session_duration, 1),
            'average_session_duration_delta': compute_delta(
                session_duration, average([row.average_session_duration for row in previous_rows])
            ),
            'page_views': sum(row.page_views for row in rows),
            'sessions_series': [
                {'date': day.isoformat(), 'sessions': by_date[day].sessions if day in by_date else 0}
                for day in list_dates(*current)
            ],
        }

    async def _build_correlations(self, period: Period, user_id: str, end_date: Optional[date]) -> Dict:
        current, _ = self._ranges(period, end_date)
        series = self._combined_series(
            current,
            self._fetch_youtube_daily(user_id, *current),
            self._fetch_ga4_daily(user_id, *current),
        )
        result = correlation.analyze(series, self.max_lag_days)

        return {
            'period': period.value,
            'score': result.score,
            'lag_days': result.lag_days,
            'lagged_score': result.lagged_score,
            'insight': result.insight,
            'points': correlation.build_chart_points(series),
            'events': correlation.detect_peaks(series),
        }

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------

    def _fetch_youtube_daily(self, user_id: str, start: date, end: date) -> List[YoutubeDailyMetric]:
        return self.db.query(YoutubeDailyMetric).filter(
            YoutubeDailyMetric.user_id == user_id,
            YoutubeDailyMetric.date >= start,
            YoutubeDailyMetric.date <= end
        ).order_by(YoutubeDailyMetric.date).all()

    def _fetch_ga4_daily(self, user_id: str, start: date, end: date) -> List[Ga4DailyMetric]:
        return self.db.query(Ga4DailyMetric).filter(
            Ga4DailyMetric.user_id == user_id,
            Ga4DailyMetric.date >= start,
            Ga4DailyMetric.date <= end
        ).order_by(Ga4DailyMetric.date).all()

    def _has_ga4(self, user_id: str) -> bool:
        return self.db.query(Ga4DailyMetric.id).filter(
            Ga4DailyMetric.user_id == user_id
        ).first() is not None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _ranges(period: Period, end_date: Optional[date]) -> Tuple[Tuple[date, date], Tuple[date, date]]:
        days = DAYS_BY_PERIOD[Period(period)]
        current = trailing_range(days, end_date)
        return current, previous_range(days, current[0])

    @staticmethod
    def _combined_series(date_range: Tuple[date, date],
                         youtube_rows: List[YoutubeDailyMetric],
                         ga_rows: List[Ga4DailyMetric]) -> List[TimeSeriesPoint]:
        """One point per day of the range; days without data count as 0"""
        youtube_by_date = {row.date: row.views for row in youtube_rows}
        ga_by_date = {row.date: row.sessions for row in ga_rows}
        return [
            TimeSeriesPoint(
                date=day,
                youtube_views=youtube_by_date.get(day, 0),
                web_sessions=ga_by_date.get(day, 0),
            )
            for day in list_dates(*date_range)
        ]

    @staticmethod
    def _youtube_metrics(rows: List[YoutubeDailyMetric]) -> YouTubeMetrics:
        return YouTubeMetrics(
            subscribers_gained=sum(row.subscribers_gained for row in rows),
            views=sum(row.views for row in rows),
            watch_time_minutes=sum(row.estimated_minutes_watched for row in rows),
        )

    @staticmethod
    def _ga4_metrics(rows: List[Ga4DailyMetric]) -> Ga4Metrics:
        return Ga4Metrics(
            new_users=sum(row.new_users for row in rows),
            bounce_rate=average([row.bounce_rate for row in rows]),
            sessions=sum(row.sessions for row in rows),
        )

    @staticmethod
    def _average_retention(rows: List[YoutubeDailyMetric]) -> float:
        durations = [row.average_view_duration_seconds for row in rows if row.average_view_duration_seconds is not None]
        if not durations:
            return 0.0
        return compute_retention_rate(average(durations))

    @staticmethod
    def _cache_key(user_id: str, kind: str, period: Period, end_date: Optional[date]) -> str:
        end = end_date.isoformat() if end_date else "today"
        return f"pulse:analytics:{user_id}:{kind}:{Period(period).value}:{end}"
