"""Database models for Pulse Analytics"""

from pulse.models.report import (
    User,
    Report,
    ReportType,
    ReportStatus,
    ReportSchedule,
    AiDigest
)

from pulse.models.metrics import (
    YoutubeDailyMetric,
    Ga4DailyMetric
)

__all__ = [
    "User",
    "Report",
    "ReportType",
    "ReportStatus",
    "ReportSchedule",
    "AiDigest",
    "YoutubeDailyMetric",
    "Ga4DailyMetric",
]
