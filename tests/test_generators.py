"""
Tests for the five recommendation rules and the opt-in motivation rule.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from study_recommendation.models.data_models import (
    ImpactLevel,
    LearningProfile,
    Priority,
    RecommendationCategory,
    RecommendationType,
    StudyAnalytics,
    StudyPreferences,
    StudySession,
    SubjectPerformance,
    SubjectStatus,
)
from study_recommendation.rule_based.generators import (
    ALGORITHM_VERSION,
    DEFAULT_GENERATORS,
    MotivationRule,
    generate_goal_recommendations,
    generate_habit_recommendations,
    generate_performance_recommendations,
    generate_schedule_recommendations,
    generate_study_method_recommendations,
)


def _subject(course_id="c1", score=70.0, consistency=80.0, frequency=4.0, status=SubjectStatus.GOOD):
    return SubjectPerformance(
        course_id=course_id,
        course_name=f"Course {course_id}",
        performance_score=score,
        consistency_score=consistency,
        study_frequency=frequency,
        status=status,
    )


class TestPerformanceRule:
    """Subject focus / study frequency recommendations"""

    @pytest.mark.unit
    def test_critical_subject_gets_focus_and_schedule(self, make_context):
        ctx = make_context()
        recs = generate_performance_recommendations(ctx)

        by_type = {r.type: r for r in recs}
        assert set(by_type) == {RecommendationType.SUBJECT_FOCUS, RecommendationType.STUDY_SCHEDULE}

        focus = by_type[RecommendationType.SUBJECT_FOCUS]
        assert focus.priority == Priority.CRITICAL
        assert focus.estimated_impact == ImpactLevel.HIGH
        assert focus.category == RecommendationCategory.IMMEDIATE
        assert focus.context.course_id == "math-101"
        assert focus.expires_at == ctx.now + timedelta(weeks=2)
        assert len(focus.action_items) == 3

        schedule = by_type[RecommendationType.STUDY_SCHEDULE]
        assert schedule.priority == Priority.HIGH
        assert schedule.expires_at is None
        assert schedule.metadata.confidence == 0.9

    @pytest.mark.unit
    def test_needs_attention_subject_is_high_priority(self, make_context):
        ctx = make_context(performance=(_subject(consistency=40, status=SubjectStatus.NEEDS_ATTENTION),))
        recs = generate_performance_recommendations(ctx)
        assert [r.type for r in recs] == [RecommendationType.SUBJECT_FOCUS]
        assert recs[0].priority == Priority.HIGH

    @pytest.mark.unit
    def test_good_subject_is_ignored(self, make_context):
        ctx = make_context(performance=(_subject(consistency=10, frequency=0),))
        assert generate_performance_recommendations(ctx) == []

    @pytest.mark.unit
    def test_snapshots_are_not_shared(self, make_context):
        recs = generate_performance_recommendations(make_context())
        assert recs[0].context is not recs[1].context
        recs[0].context.recent_activity.append("x")
        assert recs[1].context.recent_activity == []


class TestScheduleRule:
    """Peak-hour and session length recommendations"""

    @pytest.mark.unit
    def test_peak_hours_outside_preferred_times(self, make_context):
        recs = generate_schedule_recommendations(make_context())
        assert [r.type for r in recs] == [RecommendationType.TIME_MANAGEMENT]
        assert "20:00" in recs[0].description
        assert recs[0].priority == Priority.MEDIUM

    @pytest.mark.unit
    def test_peak_hours_inside_preferred_times(self, make_context):
        ctx = make_context(preferences=StudyPreferences(preferred_study_times=("19:00-22:00",)))
        assert generate_schedule_recommendations(ctx) == []

    @pytest.mark.unit
    def test_no_sessions_no_schedule_advice(self, make_context):
        assert generate_schedule_recommendations(make_context(recent_sessions=())) == []

    @pytest.mark.unit
    def test_peak_hours_use_user_timezone(self, make_context):
        # 09:00 Asia/Seoul == 00:00 UTC
        sessions = tuple(
            StudySession(
                session_id=f"kst-{day}",
                start_time=datetime(2025, 3, day, 0, 0, tzinfo=timezone.utc),
                duration_minutes=45,
            )
            for day in range(3, 8)
        )
        seoul = StudyPreferences(preferred_study_times=("09:00-11:00",), timezone="Asia/Seoul")
        assert generate_schedule_recommendations(make_context(recent_sessions=sessions, preferences=seoul)) == []

        utc = StudyPreferences(preferred_study_times=("09:00-11:00",))
        recs = generate_schedule_recommendations(make_context(recent_sessions=sessions, preferences=utc))
        assert [r.type for r in recs] == [RecommendationType.TIME_MANAGEMENT]
        assert "0:00" in recs[0].description

    @pytest.mark.unit
    def test_null_preferred_window_is_ignored(self, make_context):
        ctx = make_context(preferences=StudyPreferences(preferred_study_times=("19:00-22:00", None)))
        assert generate_schedule_recommendations(ctx) == []

    @pytest.mark.unit
    def test_unknown_timezone_falls_back_to_utc(self, make_context):
        ctx = make_context(preferences=StudyPreferences(preferred_study_times=("19:00-22:00",), timezone="Mars/Base"))
        assert generate_schedule_recommendations(ctx) == []

    @pytest.mark.unit
    def test_long_sessions(self, make_context):
        ctx = make_context(
            recent_sessions=(),
            analytics=StudyAnalytics(average_session_length=90),
        )
        recs = generate_schedule_recommendations(ctx)
        assert len(recs) == 1
        assert recs[0].type == RecommendationType.STUDY_METHOD
        assert recs[0].title == "Shorten Study Sessions"

    @pytest.mark.unit
    def test_short_sessions(self, make_context):
        ctx = make_context(recent_sessions=(), analytics=StudyAnalytics(average_session_length=20))
        recs = generate_schedule_recommendations(ctx)
        assert recs[0].title == "Extend Study Sessions"

    @pytest.mark.unit
    def test_session_length_within_tolerance(self, make_context):
        ctx = make_context(
            recent_sessions=(),
            analytics=StudyAnalytics(average_session_length=55),
            learning_profile=LearningProfile(),
        )
        assert generate_schedule_recommendations(ctx) == []

    @pytest.mark.unit
    def test_zero_average_is_skipped(self, make_context):
        ctx = make_context(recent_sessions=(), analytics=StudyAnalytics(average_session_length=0))
        assert generate_schedule_recommendations(ctx) == []


class TestStudyMethodRule:
    """Visual learner recommendations"""

    @pytest.mark.unit
    def test_visual_learner_without_visual_methods(self, make_context):
        recs = generate_study_method_recommendations(make_context())
        assert len(recs) == 1
        assert recs[0].category == RecommendationCategory.ONGOING
        assert recs[0].metadata.confidence == 0.7

    @pytest.mark.unit
    def test_already_using_visual_methods(self, make_context):
        profile = LearningProfile(learning_styles=("visual",), uses_visual_methods=True)
        assert generate_study_method_recommendations(make_context(learning_profile=profile)) == []

    @pytest.mark.unit
    def test_non_visual_learner(self, make_context):
        profile = LearningProfile(learning_styles=("auditory",))
        assert generate_study_method_recommendations(make_context(learning_profile=profile)) == []


class TestHabitRule:
    """Streak based habit formation"""

    @pytest.mark.unit
    def test_short_streak(self, make_context):
        recs = generate_habit_recommendations(make_context(analytics=StudyAnalytics(streak_days=0)))
        assert len(recs) == 1
        assert recs[0].type == RecommendationType.HABIT_FORMATION
        assert recs[0].context.study_streak == 0
        assert recs[0].category == RecommendationCategory.LONG_TERM

    @pytest.mark.unit
    def test_week_long_streak(self, make_context):
        assert generate_habit_recommendations(make_context(analytics=StudyAnalytics(streak_days=7))) == []


class TestGoalRule:
    """Goal overload recommendations"""

    @pytest.mark.unit
    def test_low_average_with_many_goals(self, make_context):
        ctx = make_context(
            performance=(_subject("a", score=45), _subject("b", score=55)),
            active_goals=("g1", "g2", "g3", "g4"),
        )
        recs = generate_goal_recommendations(ctx)
        assert len(recs) == 1
        assert recs[0].priority == Priority.HIGH
        assert recs[0].context.current_performance == 50.0

    @pytest.mark.unit
    def test_three_goals_is_fine(self, make_context):
        ctx = make_context(performance=(_subject(score=40),), active_goals=("g1", "g2", "g3"))
        assert generate_goal_recommendations(ctx) == []

    @pytest.mark.unit
    def test_good_average(self, make_context):
        ctx = make_context(performance=(_subject(score=60),), active_goals=("g1", "g2", "g3", "g4"))
        assert generate_goal_recommendations(ctx) == []

    @pytest.mark.unit
    def test_no_performance_data(self, make_context):
        ctx = make_context(performance=(), active_goals=("g1", "g2", "g3", "g4"))
        assert generate_goal_recommendations(ctx) == []


class TestRecordDefaults:
    """Shared properties of freshly generated records"""

    @pytest.mark.unit
    def test_fresh_records(self, make_context):
        ctx = make_context(analytics=StudyAnalytics(average_session_length=90, streak_days=1))
        recs = [r for rule in DEFAULT_GENERATORS for r in rule(ctx)]

        assert recs
        assert len({r.id for r in recs}) == len(recs)
        for rec in recs:
            assert rec.user_id == ctx.user_id
            assert rec.created_at == ctx.now
            assert rec.is_active and not rec.is_applied and not rec.is_dismissed
            assert 0.0 <= rec.metadata.confidence <= 1.0
            assert rec.metadata.algorithm_version == ALGORITHM_VERSION
            assert all(not item.is_completed and item.completed_at is None for item in rec.action_items)


class TestMotivationRule:
    """Opt-in motivation recommendations"""

    @staticmethod
    def _declining(ctx_now):
        return tuple(
            StudySession(session_id=f"s{i}", start_time=ctx_now - timedelta(days=7 - i), xp_earned=xp)
            for i, xp in enumerate([90, 80, 70, 30, 20, 10])
        )

    @pytest.mark.unit
    def test_fires_on_declining_trend(self, make_context):
        base = make_context()
        ctx = make_context(recent_sessions=self._declining(base.now))
        recs = MotivationRule(random.Random(1))(ctx)
        assert len(recs) == 1
        assert recs[0].type == RecommendationType.MOTIVATION_ENHANCEMENT
        assert recs[0].priority == Priority.LOW
        assert "personal_motivation" in recs[0].metadata.personalized_factors

    @pytest.mark.unit
    def test_seeded_rng_is_deterministic(self, make_context):
        base = make_context()
        ctx = make_context(recent_sessions=self._declining(base.now))
        first = MotivationRule(random.Random(42))(ctx)[0]
        second = MotivationRule(random.Random(42))(ctx)[0]
        assert first.description == second.description

    @pytest.mark.unit
    def test_stable_trend_is_silent(self, make_context):
        assert MotivationRule(random.Random(1))(make_context(recent_sessions=())) == []
