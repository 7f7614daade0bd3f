"""
Digest Service

Short narrative summary of a period's channel movement, built from
templates (no LLM call). Also maintains the user's standing digest, which
report generation reuses when present.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from pulse.models.report import AiDigest, ReportType
from pulse.utils.logger import log

ACTION_BOTH_DOWN = (
    "Prioritize high-retention content and push distribution toward your best-performing pages."
)
ACTION_YOUTUBE_DOWN = "Test new video hooks and republish your best-performing formats."
ACTION_WEB_DOWN = "Optimize landing pages and calls to action on your active traffic sources."
ACTION_MOMENTUM = (
    "Momentum is positive: keep the cadence and double down on the topics that convert."
)


@dataclass(frozen=True)
class DigestInput:
    report_type: ReportType
    youtube_views: int
    web_sessions: int
    pulse_score: int
    youtube_delta: float
    sessions_delta: float


def recommended_action(youtube_delta: float, sessions_delta: float) -> str:
    """One of four mutually exclusive actions, by the sign of each channel's delta"""
    if youtube_delta < 0 and sessions_delta < 0:
        return ACTION_BOTH_DOWN
    if youtube_delta < 0:
        return ACTION_YOUTUBE_DOWN
    if sessions_delta < 0:
        return ACTION_WEB_DOWN
    return ACTION_MOMENTUM


def generate_heuristic_digest(digest: DigestInput) -> str:
    """Metrics sentence, Pulse Score sentence and recommended action"""
    scope = "weekly" if digest.report_type == ReportType.WEEKLY else "monthly"
    youtube_trend = "up" if digest.youtube_delta >= 0 else "down"
    web_trend = "up" if digest.sessions_delta >= 0 else "down"
    strongest_channel = (
        "YouTube" if abs(digest.youtube_delta) >= abs(digest.sessions_delta) else "the web"
    )

    return " ".join([
        f"Over this {scope} period, YouTube is {youtube_trend} ({digest.youtube_views} views) "
        f"and web traffic is {web_trend} ({digest.web_sessions} sessions).",
        f"The Pulse Score stands at {digest.pulse_score}, with the strongest signal coming from {strongest_channel}.",
        recommended_action(digest.youtube_delta, digest.sessions_delta),
    ])


def digest_input_from_overview(report_type: ReportType, overview: dict) -> DigestInput:
    """Map an analytics overview onto the digest template inputs"""
    return DigestInput(
        report_type=report_type,
        youtube_views=int(overview.get('youtube_views', 0)),
        web_sessions=int(overview.get('web_sessions', 0)),
        pulse_score=int(overview.get('pulse_score', 0)),
        youtube_delta=float(overview.get('youtube_views_delta', 0)),
        sessions_delta=float(overview.get('web_sessions_delta', 0)),
    )


class DigestService:
    """Standing digest storage"""

    def __init__(self, db: Session):
        self.db = db

    def latest_standing_digest(self, user_id: str) -> Optional[str]:
        """Newest non-empty digest for the user, if any"""
        latest = self.db.query(AiDigest).filter(
            AiDigest.user_id == user_id
        ).order_by(AiDigest.created_at.desc()).first()

        if latest and latest.content and latest.content.strip():
            return latest.content
        return None

    def store_standing_digest(self, user_id: str, content: str, period: str = "7d") -> AiDigest:
        record = AiDigest(user_id=user_id, content=content, period=period)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        log.info(f"Stored standing digest for user {user_id} ({len(content)} chars)")
        return record
