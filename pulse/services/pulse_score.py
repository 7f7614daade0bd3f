"""
Pulse Score

Single 0-1000 composite of YouTube and GA4 performance for a period.
Growth and reach metrics are log-compressed into [0, 1]; engagement
metrics are ratios used as-is.
"""
import math
from dataclasses import dataclass

# Component weights (must sum to 1.0)
WEIGHTS = {
    'yt_growth': 0.25,      # subscribers gained
    'yt_engagement': 0.20,  # watch minutes per view (not normalized)
    'yt_reach': 0.20,       # views
    'ga_growth': 0.15,      # new users
    'ga_engagement': 0.10,  # 1 - bounce rate
    'ga_reach': 0.10,       # sessions
}

SCORE_SCALE = 1000
# log10(v + 1) / 6 saturates at one million
NORMALIZE_LOG_CEILING = 6


@dataclass(frozen=True)
class YouTubeMetrics:
    subscribers_gained: int = 0
    views: int = 0
    watch_time_minutes: float = 0


@dataclass(frozen=True)
class Ga4Metrics:
    new_users: int = 0
    bounce_rate: float = 0.0  # 0-1
    sessions: int = 0


def normalize(value: float) -> float:
    """Log-compress a non-negative metric into [0, 1]"""
    if value <= 0:
        return 0.0
    return min(1.0, math.log10(value + 1) / NORMALIZE_LOG_CEILING)


def components(youtube: YouTubeMetrics, ga4: Ga4Metrics) -> dict:
    """Unweighted score components, keyed like WEIGHTS"""
    yt_engagement = 0.0 if youtube.views == 0 else youtube.watch_time_minutes / youtube.views
    # A property with no sessions has no bounce rate to speak of
    ga_engagement = 0.0 if ga4.sessions <= 0 else 1 - ga4.bounce_rate

    return {
        'yt_growth': normalize(youtube.subscribers_gained),
        'yt_engagement': yt_engagement,
        'yt_reach': normalize(youtube.views),
        'ga_growth': normalize(ga4.new_users),
        'ga_engagement': ga_engagement,
        'ga_reach': normalize(ga4.sessions),
    }


def compute(youtube: YouTubeMetrics, ga4: Ga4Metrics) -> int:
    """Weighted composite score, rounded to an integer"""
    parts = components(youtube, ga4)
    raw = sum(parts[name] * weight for name, weight in WEIGHTS.items())
    return _round_half_up(raw * SCORE_SCALE)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
