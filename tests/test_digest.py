"""
Tests for the heuristic digest templates and standing digest storage.
"""
from datetime import timedelta

from pulse.models.report import AiDigest, ReportType
from pulse.services import digest_service
from pulse.services.digest_service import DigestInput, DigestService
from pulse.services.user_service import get_or_create_user
from pulse.utils.helpers import utcnow


def _input(youtube_delta, sessions_delta, report_type=ReportType.WEEKLY):
    return DigestInput(
        report_type=report_type,
        youtube_views=28400,
        web_sessions=9120,
        pulse_score=612,
        youtube_delta=youtube_delta,
        sessions_delta=sessions_delta,
    )


class TestRecommendedAction:

    def test_both_down(self):
        assert digest_service.recommended_action(-5, -2) == digest_service.ACTION_BOTH_DOWN

    def test_youtube_down_only(self):
        assert digest_service.recommended_action(-5, 3) == digest_service.ACTION_YOUTUBE_DOWN

    def test_web_down_only(self):
        assert digest_service.recommended_action(4, -1) == digest_service.ACTION_WEB_DOWN

    def test_flat_counts_as_momentum(self):
        assert digest_service.recommended_action(0, 0) == digest_service.ACTION_MOMENTUM

    def test_actions_are_distinct(self):
        actions = {
            digest_service.ACTION_BOTH_DOWN,
            digest_service.ACTION_YOUTUBE_DOWN,
            digest_service.ACTION_WEB_DOWN,
            digest_service.ACTION_MOMENTUM,
        }
        assert len(actions) == 4


class TestHeuristicDigest:

    def test_weekly_up_up(self):
        text = digest_service.generate_heuristic_digest(_input(12.5, 3.0))
        assert text.startswith("Over this weekly period, YouTube is up (28400 views)")
        assert "web traffic is up (9120 sessions)" in text
        assert "The Pulse Score stands at 612" in text
        assert "strongest signal coming from YouTube" in text
        assert text.endswith(digest_service.ACTION_MOMENTUM)

    def test_monthly_scope(self):
        text = digest_service.generate_heuristic_digest(_input(1, 1, ReportType.MONTHLY))
        assert "Over this monthly period" in text

    def test_strongest_channel_is_web_when_its_delta_is_larger(self):
        text = digest_service.generate_heuristic_digest(_input(-2.0, 15.0))
        assert "YouTube is down" in text
        assert "strongest signal coming from the web" in text
        assert text.endswith(digest_service.ACTION_YOUTUBE_DOWN)

    def test_from_overview(self):
        overview = {
            'youtube_views': 100, 'web_sessions': 40, 'pulse_score': 300,
            'youtube_views_delta': -10.0, 'web_sessions_delta': -4.0,
        }
        digest_input = digest_service.digest_input_from_overview(ReportType.WEEKLY, overview)
        assert digest_input.youtube_delta == -10.0
        assert digest_service.generate_heuristic_digest(digest_input).endswith(digest_service.ACTION_BOTH_DOWN)


class TestStandingDigest:

    def test_none_when_missing(self, db):
        assert DigestService(db).latest_standing_digest("u-1") is None

    def test_newest_wins(self, db):
        get_or_create_user(db, "u-1")
        now = utcnow()
        db.add(AiDigest(user_id="u-1", content="older", created_at=now - timedelta(days=1)))
        db.add(AiDigest(user_id="u-1", content="newer", created_at=now))
        db.commit()
        assert DigestService(db).latest_standing_digest("u-1") == "newer"

    def test_blank_newest_is_ignored(self, db):
        get_or_create_user(db, "u-1")
        now = utcnow()
        db.add(AiDigest(user_id="u-1", content="older", created_at=now - timedelta(days=1)))
        db.add(AiDigest(user_id="u-1", content="   ", created_at=now))
        db.commit()
        assert DigestService(db).latest_standing_digest("u-1") is None

    def test_store(self, db):
        get_or_create_user(db, "u-2")
        DigestService(db).store_standing_digest("u-2", "Fresh digest")
        assert DigestService(db).latest_standing_digest("u-2") == "Fresh digest"
