"""
Helper utilities
"""
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple


def today_utc() -> date:
    """Current calendar day in UTC"""
    return datetime.now(timezone.utc).date()


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the database"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def trailing_range(days: int, end: Optional[date] = None) -> Tuple[date, date]:
    """Inclusive range of `days` calendar days ending on `end` (default today UTC)"""
    end = end or today_utc()
    return end - timedelta(days=days - 1), end


def previous_range(days: int, current_start: date) -> Tuple[date, date]:
    """The `days`-long range immediately before `current_start`"""
    previous_end = current_start - timedelta(days=1)
    return previous_end - timedelta(days=days - 1), previous_end


def list_dates(start: date, end: date) -> List[date]:
    """Every calendar day from start to end, inclusive"""
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def compute_delta(current: float, previous: float) -> float:
    """Percentage change vs previous, 0 when there is no usable baseline"""
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 1)


def average(values: List[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)
