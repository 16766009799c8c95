"""
Tests for study pattern analysis (peak hours, streaks, consistency, trend).
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from study_recommendation.models.data_models import ProductivityTrend, StudySession
from study_recommendation.rule_based.study_patterns import (
    analyze_study_patterns,
    build_study_analytics,
    compute_consistency_score,
    compute_current_streak,
    compute_longest_streak,
    compute_productivity_trend,
    hour_in_window,
    identify_peak_hours,
    is_studying_during_peak_hours,
    parse_time_window,
    resolve_timezone,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _session(days_ago: int, hour: int = 10, minutes: float = 45, xp: int = 50) -> StudySession:
    start = (NOW - timedelta(days=days_ago)).replace(hour=hour, minute=0)
    return StudySession(session_id=f"s-{days_ago}-{hour}", start_time=start, duration_minutes=minutes, xp_earned=xp)


class TestPeakHours:
    """Peak hour detection and preferred window checks"""

    @pytest.mark.unit
    def test_most_frequent_hours_first(self):
        sessions = [_session(1, 20), _session(2, 20), _session(3, 21), _session(4, 9)]
        assert identify_peak_hours(sessions) == [20, 9]
        assert identify_peak_hours(sessions, top_n=1) == [20]

    @pytest.mark.unit
    def test_ties_resolve_to_earlier_hour(self):
        sessions = [_session(1, 21), _session(2, 9), _session(3, 15)]
        assert identify_peak_hours(sessions) == [9, 15]

    @pytest.mark.unit
    def test_no_sessions_no_peak(self):
        assert identify_peak_hours([]) == []

    @pytest.mark.unit
    def test_parse_time_window(self):
        start, end = parse_time_window("09:00-11:30")
        assert (start.hour, end.hour, end.minute) == (9, 11, 30)
        assert parse_time_window("morning") is None
        assert parse_time_window(None) is None

    @pytest.mark.unit
    def test_window_crossing_midnight(self):
        window = parse_time_window("22:00-01:00")
        assert hour_in_window(23, window)
        assert hour_in_window(0, window)
        assert not hour_in_window(12, window)

    @pytest.mark.unit
    def test_peak_outside_preferred_windows(self):
        assert is_studying_during_peak_hours([20, 21], ["09:00-11:00", "14:00-16:00"]) is False
        assert is_studying_during_peak_hours([20, 14], ["09:00-11:00", "14:00-16:00"]) is True

    @pytest.mark.unit
    def test_undetermined_without_data(self):
        assert is_studying_during_peak_hours([], ["09:00-11:00"]) is None
        assert is_studying_during_peak_hours([20], []) is None
        assert is_studying_during_peak_hours([20], ["not-a-window"]) is None

    @pytest.mark.unit
    def test_peak_hours_in_user_timezone(self):
        sessions = [_session(1, 0), _session(2, 0), _session(3, 1)]
        seoul = resolve_timezone("Asia/Seoul")
        assert identify_peak_hours(sessions) == [0, 1]
        assert identify_peak_hours(sessions, tz=seoul) == [9, 10]
        assert is_studying_during_peak_hours(identify_peak_hours(sessions, tz=seoul), ["09:00-11:00"]) is True

    @pytest.mark.unit
    def test_resolve_timezone_fallback(self):
        assert resolve_timezone(None) is timezone.utc
        assert resolve_timezone("") is timezone.utc
        assert resolve_timezone("Nowhere/Atlantis") is timezone.utc
        assert str(resolve_timezone("Asia/Seoul")) == "Asia/Seoul"


class TestStreaks:
    """Current / longest streak computation"""

    @pytest.mark.unit
    def test_streak_counts_from_yesterday_when_today_missing(self):
        sessions = [_session(1), _session(2), _session(3), _session(5)]
        assert compute_current_streak(sessions, NOW.date()) == 3

    @pytest.mark.unit
    def test_streak_includes_today(self):
        sessions = [_session(0), _session(1)]
        assert compute_current_streak(sessions, NOW.date()) == 2

    @pytest.mark.unit
    def test_broken_streak_is_zero(self):
        assert compute_current_streak([_session(3)], NOW.date()) == 0

    @pytest.mark.unit
    def test_longest_streak(self):
        sessions = [_session(10), _session(9), _session(8), _session(8, hour=20), _session(2), _session(1)]
        assert compute_longest_streak(sessions) == 3
        assert compute_longest_streak([]) == 0

    @pytest.mark.unit
    def test_build_study_analytics(self):
        sessions = [_session(1, minutes=30), _session(2, minutes=60)]
        analytics = build_study_analytics(sessions, NOW.date())
        assert analytics.total_study_time == 90
        assert analytics.average_session_length == 45
        assert analytics.streak_days == 2
        assert analytics.longest_streak == 2

    @pytest.mark.unit
    def test_empty_analytics(self):
        analytics = build_study_analytics([], date(2025, 3, 10))
        assert analytics.streak_days == 0
        assert analytics.average_session_length == 0

    @pytest.mark.unit
    def test_streak_days_in_user_timezone(self):
        # 20:00 UTC 는 Asia/Seoul 다음날 05:00
        sessions = [_session(1, 20), _session(2, 20), _session(3, 20)]
        seoul = resolve_timezone("Asia/Seoul")
        local_today = NOW.astimezone(seoul).date()

        assert compute_current_streak(sessions, NOW.date()) == 3
        assert compute_current_streak(sessions, local_today, seoul) == 3
        assert compute_current_streak(sessions, NOW.date() + timedelta(days=1)) == 0
        assert compute_current_streak(sessions, NOW.date() + timedelta(days=1), seoul) == 3


class TestConsistencyAndTrend:
    """Consistency score and XP productivity trend"""

    @pytest.mark.unit
    def test_daily_study_scores_full_consistency(self):
        sessions = [_session(d) for d in range(30)]
        assert compute_consistency_score(sessions, NOW) == 100

    @pytest.mark.unit
    def test_no_recent_sessions(self):
        assert compute_consistency_score([_session(45)], NOW) == 0

    @pytest.mark.unit
    def test_declining_trend(self):
        sessions = [_session(d, xp=xp) for d, xp in zip(range(6, 0, -1), [80, 70, 60, 40, 35, 30])]
        assert compute_productivity_trend(sessions) == ProductivityTrend.DECLINING

    @pytest.mark.unit
    def test_improving_trend(self):
        sessions = [_session(d, xp=xp) for d, xp in zip(range(6, 0, -1), [30, 35, 40, 60, 70, 80])]
        assert compute_productivity_trend(sessions) == ProductivityTrend.IMPROVING

    @pytest.mark.unit
    def test_too_few_sessions_is_stable(self):
        sessions = [_session(2, xp=100), _session(1, xp=10)]
        assert compute_productivity_trend(sessions) == ProductivityTrend.STABLE

    @pytest.mark.unit
    def test_analyze_empty(self):
        pattern = analyze_study_patterns([], NOW)
        assert pattern.peak_hours == ()
        assert pattern.consistency_score == 0
        assert pattern.productivity_trend == ProductivityTrend.STABLE

    @pytest.mark.unit
    def test_break_length_scales_with_session_length(self):
        pattern = analyze_study_patterns([_session(1, minutes=100), _session(2, minutes=100)], NOW)
        assert pattern.preferred_break_length == 20
        assert pattern.average_session_length == 100
