from __future__ import annotations

import random
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Sequence
from uuid import uuid4

import numpy as np

from ..models.data_models import (
    ActionItem,
    ActionItemKind,
    ImpactLevel,
    MotivationStyle,
    Priority,
    ProductivityTrend,
    RecommendationCategory,
    RecommendationContext,
    RecommendationMetadata,
    RecommendationSnapshot,
    RecommendationType,
    StudyRecommendation,
    SubjectPerformance,
    SubjectStatus,
)
from .study_patterns import (
    analyze_study_patterns,
    identify_peak_hours,
    is_studying_during_peak_hours,
    resolve_timezone,
)

ALGORITHM_VERSION = "1.0.0"

RuleGenerator = Callable[[RecommendationContext], List[StudyRecommendation]]

# Threshold Definitions
LOW_CONSISTENCY = 50
LOW_FREQUENCY = 2  # sessions / week
SUBJECT_FOCUS_TTL = timedelta(weeks=2)
DEFAULT_ATTENTION_SPAN = 45  # minutes
SESSION_LENGTH_TOLERANCE = 15  # minutes
STREAK_TARGET_DAYS = 7
GOAL_PERFORMANCE_FLOOR = 60
MAX_GOALS = 3


def _item(description: str, kind: ActionItemKind, minutes: Optional[int] = None) -> ActionItem:
    return ActionItem(id=str(uuid4()), description=description, kind=kind, estimated_minutes=minutes)


def _recommendation(
    ctx: RecommendationContext,
    rec_type: RecommendationType,
    priority: Priority,
    title: str,
    description: str,
    reasoning: str,
    action_items: List[ActionItem],
    impact: ImpactLevel,
    time_to_implement: str,
    category: RecommendationCategory,
    confidence: float,
    data_points: List[str],
    factors: List[str],
    snapshot: Optional[RecommendationSnapshot] = None,
    ttl: Optional[timedelta] = None,
) -> StudyRecommendation:
    return StudyRecommendation(
        id=str(uuid4()),
        user_id=ctx.user_id,
        type=rec_type,
        priority=priority,
        title=title,
        description=description,
        reasoning=reasoning,
        action_items=action_items,
        estimated_impact=impact,
        time_to_implement=time_to_implement,
        category=category,
        context=snapshot or RecommendationSnapshot(),
        metadata=RecommendationMetadata(
            confidence=confidence,
            data_points=data_points,
            algorithm_version=ALGORITHM_VERSION,
            personalized_factors=factors,
        ),
        created_at=ctx.now,
        expires_at=ctx.now + ttl if ttl else None,
    )


def _subject_snapshot(subject: SubjectPerformance) -> RecommendationSnapshot:
    return RecommendationSnapshot(
        course_id=subject.course_id,
        course_name=subject.course_name,
        current_performance=subject.performance_score,
    )


# ------------------------------------------------------
# 1) Performance focus
# ------------------------------------------------------
def generate_performance_recommendations(ctx: RecommendationContext) -> List[StudyRecommendation]:
    recs: List[StudyRecommendation] = []
    struggling = [
        p for p in ctx.performance
        if p.status in (SubjectStatus.CRITICAL, SubjectStatus.NEEDS_ATTENTION)
    ]

    for subject in struggling:
        if subject.consistency_score < LOW_CONSISTENCY:
            recs.append(_recommendation(
                ctx,
                RecommendationType.SUBJECT_FOCUS,
                Priority.CRITICAL if subject.status == SubjectStatus.CRITICAL else Priority.HIGH,
                title=f"Boost {subject.course_name} Performance",
                description=(
                    f"Your {subject.course_name} performance needs attention. "
                    "Focus on consistency and regular study sessions."
                ),
                reasoning=(
                    f"Consistency score is {subject.consistency_score:g}/100, "
                    "which is below the recommended threshold."
                ),
                action_items=[
                    _item(f"Schedule daily 30-minute study sessions for {subject.course_name}", ActionItemKind.HABIT, 30),
                    _item("Set up study reminders for this subject", ActionItemKind.SETTING),
                    _item("Review and update study materials", ActionItemKind.TASK, 15),
                ],
                impact=ImpactLevel.HIGH,
                time_to_implement="1-2 weeks",
                category=RecommendationCategory.IMMEDIATE,
                confidence=0.85,
                data_points=["consistency_score", "performance_score", "study_frequency"],
                factors=["low_consistency", "irregular_study_pattern"],
                snapshot=_subject_snapshot(subject),
                ttl=SUBJECT_FOCUS_TTL,
            ))

        # 같은 과목에서 두 추천이 동시에 나올 수 있음
        if subject.study_frequency < LOW_FREQUENCY:
            recs.append(_recommendation(
                ctx,
                RecommendationType.STUDY_SCHEDULE,
                Priority.HIGH,
                title=f"Increase Study Frequency for {subject.course_name}",
                description=(
                    f"You're only studying {subject.course_name} {subject.study_frequency:g} times per week. "
                    "Aim for at least 3-4 sessions."
                ),
                reasoning="Frequent, shorter study sessions are more effective than infrequent, long sessions.",
                action_items=[
                    _item("Add 2 more study sessions per week", ActionItemKind.HABIT),
                    _item("Use spaced repetition for better retention", ActionItemKind.TASK),
                ],
                impact=ImpactLevel.HIGH,
                time_to_implement="1 week",
                category=RecommendationCategory.SHORT_TERM,
                confidence=0.9,
                data_points=["study_frequency", "session_distribution"],
                factors=["low_frequency", "spaced_repetition_opportunity"],
                snapshot=_subject_snapshot(subject),
            ))

    return recs


# ------------------------------------------------------
# 2) Schedule optimization
# ------------------------------------------------------
def generate_schedule_recommendations(ctx: RecommendationContext) -> List[StudyRecommendation]:
    recs: List[StudyRecommendation] = []

    tz = resolve_timezone(ctx.preferences.timezone)
    peak_hours = identify_peak_hours(ctx.recent_sessions, tz=tz)
    studying_in_peak = is_studying_during_peak_hours(peak_hours, ctx.preferences.preferred_study_times)

    if studying_in_peak is False:
        hours_str = ", ".join(f"{h}:00" for h in peak_hours)
        first = peak_hours[0]
        recs.append(_recommendation(
            ctx,
            RecommendationType.TIME_MANAGEMENT,
            Priority.MEDIUM,
            title="Optimize Your Study Schedule",
            description=(
                f"Your peak study hours are {hours_str}. "
                "Consider scheduling important subjects during these times."
            ),
            reasoning="Your sessions cluster around hours that your current study schedule does not cover.",
            action_items=[
                _item(f"Schedule challenging subjects between {first}:00-{(first + 2) % 24}:00", ActionItemKind.TASK),
                _item("Move review sessions to lower-energy hours", ActionItemKind.TASK),
            ],
            impact=ImpactLevel.MEDIUM,
            time_to_implement="3-5 days",
            category=RecommendationCategory.SHORT_TERM,
            confidence=0.75,
            data_points=["session_performance", "time_analysis"],
            factors=["peak_hours_identified", "schedule_optimization"],
            snapshot=RecommendationSnapshot(time_of_day=", ".join(str(h) for h in peak_hours)),
        ))

    avg_len = ctx.analytics.average_session_length
    optimal = ctx.learning_profile.attention_span or DEFAULT_ATTENTION_SPAN

    if avg_len > 0 and abs(avg_len - optimal) > SESSION_LENGTH_TOLERANCE:
        too_long = avg_len > optimal
        recs.append(_recommendation(
            ctx,
            RecommendationType.STUDY_METHOD,
            Priority.MEDIUM,
            title="Shorten Study Sessions" if too_long else "Extend Study Sessions",
            description=(
                f"Your average session length ({avg_len:g} min) exceeds your optimal attention span. "
                "Consider shorter, more focused sessions."
                if too_long else
                f"Your sessions ({avg_len:g} min) are shorter than optimal. "
                "Try extending them for better deep work."
            ),
            reasoning="Matching session length to attention span improves focus and retention.",
            action_items=[
                _item(
                    f"Aim for {optimal}-minute study sessions" if too_long
                    else f"Gradually increase sessions to {optimal} minutes",
                    ActionItemKind.HABIT,
                ),
                _item("Use the Pomodoro technique for better time management", ActionItemKind.TASK),
            ],
            impact=ImpactLevel.MEDIUM,
            time_to_implement="1 week",
            category=RecommendationCategory.SHORT_TERM,
            confidence=0.8,
            data_points=["session_length", "attention_span"],
            factors=["session_optimization", "attention_span_matching"],
        ))

    return recs


# ------------------------------------------------------
# 3) Study method (learning style)
# ------------------------------------------------------
def generate_study_method_recommendations(ctx: RecommendationContext) -> List[StudyRecommendation]:
    profile = ctx.learning_profile
    if "visual" not in profile.learning_styles or profile.uses_visual_methods:
        return []

    return [_recommendation(
        ctx,
        RecommendationType.STUDY_METHOD,
        Priority.MEDIUM,
        title="Incorporate Visual Learning Techniques",
        description=(
            "Your learning profile indicates visual learning preferences. "
            "Try incorporating more visual study methods."
        ),
        reasoning="Visual learners retain information better through diagrams, charts, and visual representations.",
        action_items=[
            _item("Create mind maps for complex topics", ActionItemKind.TASK, 20),
            _item("Use color-coding in your notes", ActionItemKind.HABIT),
            _item("Find video resources for difficult concepts", ActionItemKind.RESOURCE),
        ],
        impact=ImpactLevel.MEDIUM,
        time_to_implement="1-2 weeks",
        category=RecommendationCategory.ONGOING,
        confidence=0.7,
        data_points=["learning_style", "study_methods"],
        factors=["visual_learner", "method_optimization"],
    )]


# ------------------------------------------------------
# 4) Habit formation
# ------------------------------------------------------
def generate_habit_recommendations(ctx: RecommendationContext) -> List[StudyRecommendation]:
    streak = ctx.analytics.streak_days
    if streak >= STREAK_TARGET_DAYS:
        return []

    return [_recommendation(
        ctx,
        RecommendationType.HABIT_FORMATION,
        Priority.MEDIUM,
        title="Build a Consistent Study Streak",
        description=f"Your current study streak is {streak} days. Let's work on building consistency.",
        reasoning="Consistent daily study habits lead to better long-term retention and academic performance.",
        action_items=[
            _item("Study for at least 15 minutes every day", ActionItemKind.HABIT, 15),
            _item("Set a daily study reminder", ActionItemKind.SETTING),
            _item("Track your streak in the app", ActionItemKind.TASK),
        ],
        impact=ImpactLevel.HIGH,
        time_to_implement="2-3 weeks",
        category=RecommendationCategory.LONG_TERM,
        confidence=0.85,
        data_points=["streak_days", "consistency_pattern"],
        factors=["habit_building", "consistency_improvement"],
        snapshot=RecommendationSnapshot(study_streak=streak),
    )]


# ------------------------------------------------------
# 5) Goal adjustment
# ------------------------------------------------------
def generate_goal_recommendations(ctx: RecommendationContext) -> List[StudyRecommendation]:
    # 성과 데이터가 없으면 평균을 낼 수 없으므로 생략
    if not ctx.performance:
        return []

    avg_performance = float(np.mean([p.performance_score for p in ctx.performance]))
    if avg_performance >= GOAL_PERFORMANCE_FLOOR or len(ctx.active_goals) <= MAX_GOALS:
        return []

    return [_recommendation(
        ctx,
        RecommendationType.GOAL_ADJUSTMENT,
        Priority.HIGH,
        title="Simplify Your Study Goals",
        description=(
            "You have many active goals but current performance suggests focusing on "
            "fewer, more achievable objectives."
        ),
        reasoning="Focusing on fewer goals increases the likelihood of success and reduces overwhelm.",
        action_items=[
            _item("Identify your top 2 priority subjects", ActionItemKind.TASK, 10),
            _item("Pause non-critical goals temporarily", ActionItemKind.TASK),
            _item("Set smaller, achievable milestones", ActionItemKind.TASK, 15),
        ],
        impact=ImpactLevel.HIGH,
        time_to_implement="1 week",
        category=RecommendationCategory.IMMEDIATE,
        confidence=0.8,
        data_points=["performance_average", "active_goals_count"],
        factors=["goal_overload", "focus_optimization"],
        snapshot=RecommendationSnapshot(current_performance=round(avg_performance, 1)),
    )]


DEFAULT_GENERATORS: Sequence[RuleGenerator] = (
    generate_performance_recommendations,
    generate_schedule_recommendations,
    generate_study_method_recommendations,
    generate_habit_recommendations,
    generate_goal_recommendations,
)


# ------------------------------------------------------
# (opt-in) Motivation enhancement
# ------------------------------------------------------
MOTIVATION_TEMPLATES: Dict[MotivationStyle, List[str]] = {
    MotivationStyle.COMPETITIVE: [
        "Challenge a study-group friend to beat your XP this week.",
        "Climb one spot on the leaderboard before Sunday.",
        "Set a personal record for focused minutes in a single day.",
    ],
    MotivationStyle.COLLABORATIVE: [
        "Join a study room session with your group this week.",
        "Pair up with a classmate for a shared review session.",
        "Share one thing you learned today in your group chat.",
    ],
    MotivationStyle.PERSONAL: [
        "Write down why this course matters to you and keep it visible.",
        "Reward yourself after finishing three focused sessions.",
        "Look back at how far you've come since your first session.",
    ],
}


class MotivationRule:
    """
    생산성 추세가 하락 중일 때 motivation_enhancement 추천 생성.
    문구 선택은 주입된 random.Random 으로만 하므로 seed 를 고정하면 결과가 결정적이다.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def __call__(self, ctx: RecommendationContext) -> List[StudyRecommendation]:
        pattern = analyze_study_patterns(
            ctx.recent_sessions, ctx.now, resolve_timezone(ctx.preferences.timezone)
        )
        if pattern.productivity_trend != ProductivityTrend.DECLINING:
            return []

        style = ctx.preferences.motivation_style
        message = self.rng.choice(MOTIVATION_TEMPLATES[style])
        return [_recommendation(
            ctx,
            RecommendationType.MOTIVATION_ENHANCEMENT,
            Priority.LOW,
            title="Recharge Your Motivation",
            description=f"Your recent study output has been dropping. {message}",
            reasoning=(
                f"XP per session declined over your recent sessions "
                f"(consistency score {pattern.consistency_score}/100)."
            ),
            action_items=[
                _item(message, ActionItemKind.TASK),
                _item(f"Take {pattern.preferred_break_length}-minute breaks between sessions", ActionItemKind.HABIT),
            ],
            impact=ImpactLevel.MEDIUM,
            time_to_implement="ongoing",
            category=RecommendationCategory.ONGOING,
            confidence=0.6,
            data_points=["xp_trend", "consistency_score"],
            factors=["declining_productivity", f"{style.value}_motivation"],
        )]
