"""
Tests for the cross-channel correlation engine.

Pure functions only, no database:
  - Pearson score degeneracy and sign
  - Lag search with tie-breaks and the minimum-pairs rule
  - Insight categories
  - Chart normalisation and peak detection
"""
from datetime import date, timedelta

from pulse.services import correlation
from pulse.services.correlation import TimeSeriesPoint


def _series(pairs, start=date(2026, 3, 2)):
    return [
        TimeSeriesPoint(date=start + timedelta(days=i), youtube_views=yt, web_sessions=web)
        for i, (yt, web) in enumerate(pairs)
    ]


class TestCompute:

    def test_flat_series_is_zero(self):
        points = _series([(10, 10), (10, 10), (10, 10)])
        assert correlation.compute(points) == 0

    def test_one_flat_channel_is_zero(self):
        points = _series([(10, 5), (10, 50), (10, 500), (10, 7)])
        assert correlation.compute(points) == 0

    def test_too_few_points_is_zero(self):
        assert correlation.compute([]) == 0
        assert correlation.compute(_series([(100, 80)])) == 0

    def test_linear_relation_is_strongly_positive(self):
        points = _series([(v, int(v * 0.85)) for v in (100, 200, 300, 400, 500, 600)])
        score = correlation.compute(points)
        assert score > 0.8
        assert score <= 1.0

    def test_three_point_fixture(self):
        points = _series([(100, 80), (200, 170), (300, 260)])
        assert correlation.compute(points) > 0.8

    def test_inverse_relation_is_negative(self):
        points = _series([(100, 500), (200, 400), (300, 300), (400, 200)])
        assert correlation.compute(points) == -1.0

    def test_rounded_to_three_decimals(self):
        points = _series([(100, 10), (200, 20), (300, 100), (400, 200), (500, 300)])
        score = correlation.compute(points)
        assert score == round(score, 3)

    def test_compute_for_lag_pairs_youtube_with_later_sessions(self):
        # web on day i+1 equals youtube on day i
        points = _series([(100, 0), (300, 100), (200, 300), (500, 200), (400, 500)])
        assert correlation.compute_for_lag(points, 1) == 1.0

    def test_lag_beyond_series_is_zero(self):
        points = _series([(100, 80), (200, 170), (300, 260)])
        assert correlation.compute_for_lag(points, 5) == 0
        assert correlation.compute_for_lag(points, -5) == 0


class TestFindBestLag:

    def test_detects_web_following_youtube(self):
        points = _series([(100, 10), (200, 20), (300, 100), (400, 200), (500, 300)])
        result = correlation.find_best_lag(points, 3)
        assert result.lag_days == 2
        assert result.score > 0.95

    def test_three_points_keep_zero_lag(self):
        points = _series([(100, 80), (200, 170), (300, 260)])
        result = correlation.find_best_lag(points, 7)
        assert result.lag_days == 0
        assert result.score == correlation.compute(points)
        assert result.score > 0.8

    def test_tie_prefers_lag_closest_to_zero(self):
        # a straight ramp correlates perfectly at every shift
        points = _series([(v, v) for v in range(10, 110, 10)])
        result = correlation.find_best_lag(points, 7)
        assert result.lag_days == 0
        assert result.score == 1.0

    def test_tie_prefers_nearer_lag_over_farther(self):
        # web repeats YouTube one day later on a 4-day cycle: lags +1 and -3 are both perfect
        pattern = [10, 50, 20, 80]
        points = _series([(pattern[i % 4], pattern[(i - 1) % 4]) for i in range(12)])
        assert correlation.compute_for_lag(points, -3) == correlation.compute_for_lag(points, 1) == 1.0
        assert abs(correlation.compute_for_lag(points, 0)) < 1.0

        result = correlation.find_best_lag(points, 3)
        assert result.lag_days == 1
        assert result.score == 1.0

    def test_tie_between_opposite_lags_prefers_positive(self):
        # two days apart on a 4-day cycle: lags -2 and +2 are both perfect
        pattern = [10, 50, 20, 80]
        points = _series([(pattern[i % 4], pattern[(i + 2) % 4]) for i in range(12)])
        assert correlation.compute_for_lag(points, -2) == correlation.compute_for_lag(points, 2) == 1.0

        result = correlation.find_best_lag(points, 3)
        assert result.lag_days == 2
        assert result.score == 1.0

    def test_short_shifts_are_skipped(self):
        # only 2 pairs would remain at lag 3, which always correlates perfectly
        points = _series([(100, 50), (120, 400), (90, 60), (300, 70), (80, 200)])
        result = correlation.find_best_lag(points, 3)
        assert abs(result.lag_days) <= 2

    def test_flat_series(self):
        points = _series([(10, 10)] * 8)
        result = correlation.find_best_lag(points)
        assert result.lag_days == 0
        assert result.score == 0

    def test_empty_series(self):
        result = correlation.find_best_lag([])
        assert result.lag_days == 0
        assert result.score == 0


class TestBuildInsight:

    def test_weak(self):
        insight = correlation.build_insight(0.1, 3)
        assert insight.startswith("Weak correlation")

    def test_weak_boundary(self):
        assert correlation.build_insight(-0.19, 0).startswith("Weak correlation")
        assert not correlation.build_insight(0.2, 0).startswith("Weak correlation")

    def test_leading_indicator(self):
        insight = correlation.build_insight(0.76, 2)
        assert "YouTube" in insight
        assert "leading indicator" in insight
        assert "2 days" in insight

    def test_single_day_lag_is_singular(self):
        assert "1 day after" in correlation.build_insight(0.5, 1)

    def test_web_leads(self):
        insight = correlation.build_insight(0.6, -3)
        assert insight.startswith("Web traffic leads YouTube")
        assert "3 days" in insight

    def test_same_day(self):
        assert "same day" in correlation.build_insight(0.9, 0)

    def test_inverse_is_lag_aware(self):
        assert correlation.build_insight(-0.7, 0).startswith("Inverse correlation")
        assert "4 days" in correlation.build_insight(-0.7, 4)
        assert "2 days" in correlation.build_insight(-0.7, -2)

    def test_deterministic(self):
        assert correlation.build_insight(0.45, 1) == correlation.build_insight(0.45, 1)


class TestAnalyze:

    def test_combines_same_day_and_lagged(self):
        points = _series([(100, 10), (200, 20), (300, 100), (400, 200), (500, 300)])
        result = correlation.analyze(points, 3)
        assert result.score == correlation.compute(points)
        assert result.lag_days == 2
        assert result.insight == correlation.build_insight(result.lagged_score, 2)


class TestChartAndPeaks:

    def test_chart_points_normalised_to_own_max(self):
        points = _series([(50, 0), (200, 40), (100, 20)])
        chart = correlation.build_chart_points(points)
        assert [p['youtube_normalized'] for p in chart] == [25.0, 100.0, 50.0]
        assert [p['web_sessions_normalized'] for p in chart] == [0.0, 100.0, 50.0]
        assert chart[0]['date'] == "2026-03-02"

    def test_chart_points_all_zero(self):
        chart = correlation.build_chart_points(_series([(0, 0), (0, 0)]))
        assert all(p['youtube_normalized'] == 0 for p in chart)

    def test_peaks_chronological_and_labelled(self):
        points = _series([
            (10, 0), (500, 0), (10, 0), (10, 0), (900, 0), (10, 0), (10, 0), (700, 0), (10, 0),
        ])
        events = correlation.detect_peaks(points)
        assert [e['label'] for e in events] == ["Video peak 1", "Video peak 2", "Video peak 3"]
        assert [e['date'] for e in events] == sorted(e['date'] for e in events)
        assert all(e['type'] == "youtube_peak" for e in events)

    def test_peaks_capped_at_three(self):
        pairs = []
        for height in (400, 500, 600, 700):
            pairs += [(10, 0), (height, 0)]
        events = correlation.detect_peaks(_series(pairs + [(10, 0)]))
        assert len(events) == 3
        # the weakest peak (400) is dropped
        assert events[0]['date'] == (date(2026, 3, 2) + timedelta(days=3)).isoformat()

    def test_no_peak_falls_back_to_strongest_day(self):
        events = correlation.detect_peaks(_series([(100, 0), (110, 0), (105, 0)]))
        assert events == [{'date': "2026-03-03", 'label': "Video peak", 'type': "youtube_peak"}]

    def test_empty(self):
        assert correlation.detect_peaks([]) == []
