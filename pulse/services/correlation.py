"""
Cross-Channel Correlation Engine

Pearson correlation between daily YouTube views and daily web sessions,
with a lag search that looks for one channel leading the other.
Answers: "Does my YouTube activity actually drive traffic to my site?"

Every function here is pure and never raises: degenerate input (too few
points, a flat series) yields a neutral score of 0.
"""
import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Sequence

# A two-point correlation is always +/-1, so shifted windows need at least this many pairs
MIN_LAG_SAMPLES = 3
WEAK_CORRELATION_THRESHOLD = 0.2
PEAK_THRESHOLD_RATIO = 1.35
MAX_PEAK_EVENTS = 3


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One day of combined channel activity"""
    date: date
    youtube_views: int
    web_sessions: int


@dataclass(frozen=True)
class LagResult:
    lag_days: int
    score: float


@dataclass(frozen=True)
class CorrelationResult:
    score: float
    lag_days: int
    lagged_score: float
    insight: str


def compute(points: Sequence[TimeSeriesPoint]) -> float:
    """Same-day correlation between YouTube views and web sessions"""
    return compute_for_lag(points, 0)


def compute_for_lag(points: Sequence[TimeSeriesPoint], lag_days: int) -> float:
    """
    Correlation of YouTube views on day i with web sessions on day i + lag_days

    Positive lags test "YouTube leads web", negative lags the reverse.
    Returns 0 for fewer than 2 paired samples or a flat series, otherwise
    the Pearson coefficient rounded to 3 decimals.
    """
    youtube_values, web_values = _paired_values(points, lag_days)
    if len(youtube_values) < 2:
        return 0.0

    youtube_mean = sum(youtube_values) / len(youtube_values)
    web_mean = sum(web_values) / len(web_values)

    numerator = 0.0
    youtube_denominator = 0.0
    web_denominator = 0.0

    for youtube, web in zip(youtube_values, web_values):
        yt_centered = youtube - youtube_mean
        web_centered = web - web_mean
        numerator += yt_centered * web_centered
        youtube_denominator += yt_centered ** 2
        web_denominator += web_centered ** 2

    denominator = math.sqrt(youtube_denominator * web_denominator)
    if denominator == 0:
        return 0.0

    return round(numerator / denominator, 3)


def find_best_lag(points: Sequence[TimeSeriesPoint], max_lag_days: int = 7) -> LagResult:
    """
    Scan lags in [-max_lag_days, +max_lag_days] for the strongest |correlation|

    Ties go to the lag closest to zero, then to the positive lag. Shifts
    leaving fewer than MIN_LAG_SAMPLES pairs are skipped; the same-day
    baseline is always eligible.
    """
    best = LagResult(lag_days=0, score=compute_for_lag(points, 0))

    for lag in range(-max_lag_days, max_lag_days + 1):
        if lag == 0 or len(points) - abs(lag) < MIN_LAG_SAMPLES:
            continue

        score = compute_for_lag(points, lag)
        if abs(score) > abs(best.score):
            best = LagResult(lag_days=lag, score=score)
        elif abs(score) == abs(best.score) and _closer_to_zero(lag, best.lag_days):
            best = LagResult(lag_days=lag, score=score)

    return LagResult(lag_days=best.lag_days, score=round(best.score, 3))


def build_insight(score: float, lag_days: int) -> str:
    """Plain-English reading of a (score, lag) pair"""
    if abs(score) < WEAK_CORRELATION_THRESHOLD:
        return (
            f"Weak correlation (r={score:.2f}): YouTube views and web sessions "
            f"don't move together in a meaningful way over this period."
        )

    if score > 0:
        if lag_days > 0:
            return (
                f"YouTube is a leading indicator: web sessions tend to rise "
                f"{_days(lag_days)} after YouTube views do (r={score:.2f})."
            )
        if lag_days < 0:
            return (
                f"Web traffic leads YouTube: YouTube views tend to rise "
                f"{_days(-lag_days)} after web sessions do (r={score:.2f})."
            )
        return f"YouTube views and web sessions move together on the same day (r={score:.2f})."

    if lag_days > 0:
        return (
            f"Inverse correlation: web sessions tend to drop "
            f"{_days(lag_days)} after YouTube views rise (r={score:.2f})."
        )
    if lag_days < 0:
        return (
            f"Inverse correlation: YouTube views tend to drop "
            f"{_days(-lag_days)} after web sessions rise (r={score:.2f})."
        )
    return f"Inverse correlation: when YouTube views rise, web sessions tend to fall the same day (r={score:.2f})."


def analyze(points: Sequence[TimeSeriesPoint], max_lag_days: int = 7) -> CorrelationResult:
    """Same-day score, best lag and its insight in one pass"""
    lagged = find_best_lag(points, max_lag_days)
    return CorrelationResult(
        score=compute(points),
        lag_days=lagged.lag_days,
        lagged_score=lagged.score,
        insight=build_insight(lagged.score, lagged.lag_days),
    )


def build_chart_points(points: Sequence[TimeSeriesPoint]) -> List[Dict]:
    """Both series rescaled to 0-100 against their own maximum, for dual-axis charts"""
    max_youtube = max([1] + [p.youtube_views for p in points])
    max_web = max([1] + [p.web_sessions for p in points])

    return [
        {
            'date': p.date.isoformat(),
            'youtube_views': p.youtube_views,
            'web_sessions': p.web_sessions,
            'youtube_normalized': round(p.youtube_views / max_youtube * 100, 1),
            'web_sessions_normalized': round(p.web_sessions / max_web * 100, 1),
        }
        for p in points
    ]


def detect_peaks(points: Sequence[TimeSeriesPoint]) -> List[Dict]:
    """
    Up to three significant YouTube peaks, in chronological order

    A peak is a local maximum with positive views of at least 1.35x the
    mean. With no qualifying peak the single strongest day is returned.
    """
    if not points:
        return []

    mean_youtube = sum(p.youtube_views for p in points) / len(points)
    threshold = mean_youtube * PEAK_THRESHOLD_RATIO

    peaks = []
    for index, point in enumerate(points):
        if point.youtube_views <= 0:
            continue
        previous = points[index - 1].youtube_views if index > 0 else -1
        following = points[index + 1].youtube_views if index + 1 < len(points) else -1
        is_local_max = point.youtube_views >= previous and point.youtube_views >= following
        if is_local_max and point.youtube_views >= threshold:
            peaks.append(point)

    peaks = sorted(peaks, key=lambda p: p.youtube_views, reverse=True)[:MAX_PEAK_EVENTS]
    peaks.sort(key=lambda p: p.date)

    if not peaks:
        strongest = max(points, key=lambda p: p.youtube_views)
        return [{'date': strongest.date.isoformat(), 'label': "Video peak", 'type': "youtube_peak"}]

    return [
        {'date': peak.date.isoformat(), 'label': f"Video peak {index}", 'type': "youtube_peak"}
        for index, peak in enumerate(peaks, start=1)
    ]


def _paired_values(points: Sequence[TimeSeriesPoint], lag_days: int):
    youtube_values = []
    web_values = []
    for index, point in enumerate(points):
        shifted = index + lag_days
        if 0 <= shifted < len(points):
            youtube_values.append(point.youtube_views)
            web_values.append(points[shifted].web_sessions)
    return youtube_values, web_values


def _closer_to_zero(candidate: int, current: int) -> bool:
    if abs(candidate) != abs(current):
        return abs(candidate) < abs(current)
    return candidate > current


def _days(count: int) -> str:
    return f"{count} day" if count == 1 else f"{count} days"
