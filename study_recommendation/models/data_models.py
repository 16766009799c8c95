from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


# ------------------------------------------------------
# Enum 정의 (DB CHECK 제약과 동일한 값)
# ------------------------------------------------------
class RecommendationType(str, Enum):
    STUDY_SCHEDULE = "study_schedule"
    SUBJECT_FOCUS = "subject_focus"
    STUDY_METHOD = "study_method"
    BREAK_OPTIMIZATION = "break_optimization"
    GOAL_ADJUSTMENT = "goal_adjustment"
    RESOURCE_SUGGESTION = "resource_suggestion"
    HABIT_FORMATION = "habit_formation"
    PERFORMANCE_BOOST = "performance_boost"
    TIME_MANAGEMENT = "time_management"
    MOTIVATION_ENHANCEMENT = "motivation_enhancement"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ImpactLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationCategory(str, Enum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"
    ONGOING = "ongoing"


class ActionItemKind(str, Enum):
    TASK = "task"
    HABIT = "habit"
    SETTING = "setting"
    RESOURCE = "resource"


class SubjectStatus(str, Enum):
    CRITICAL = "critical"
    NEEDS_ATTENTION = "needs_attention"
    GOOD = "good"


class MotivationStyle(str, Enum):
    COMPETITIVE = "competitive"
    COLLABORATIVE = "collaborative"
    PERSONAL = "personal"


class ProductivityTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


# ------------------------------------------------------
# Provider 입력 데이터 (읽기 전용)
# ------------------------------------------------------
@dataclass(frozen=True)
class SubjectPerformance:
    course_id: str
    course_name: str
    performance_score: float
    consistency_score: float
    study_frequency: float  # sessions / week
    status: SubjectStatus = SubjectStatus.GOOD
    last_studied_at: Optional[datetime] = None


@dataclass(frozen=True)
class StudySession:
    session_id: str
    start_time: datetime
    duration_minutes: float = 0.0
    course_id: Optional[str] = None
    xp_earned: int = 0


@dataclass(frozen=True)
class StudyAnalytics:
    total_study_time: float = 0.0
    average_session_length: float = 0.0
    streak_days: int = 0
    longest_streak: int = 0


@dataclass(frozen=True)
class LearningProfile:
    learning_styles: Tuple[str, ...] = ()
    attention_span: Optional[int] = None
    best_study_times: Tuple[str, ...] = ()
    uses_visual_methods: bool = False


@dataclass(frozen=True)
class StudyPreferences:
    preferred_study_times: Tuple[str, ...] = ()
    max_session_length: int = 60
    break_frequency: int = 25
    difficulty_preference: str = "gradual"
    motivation_style: MotivationStyle = MotivationStyle.PERSONAL
    reminder_frequency: str = "medium"
    timezone: str = "UTC"  # IANA 이름, 세션 시각을 이 시간대로 해석


@dataclass(frozen=True)
class StudyPattern:
    peak_hours: Tuple[int, ...]
    average_session_length: float
    preferred_break_length: int
    consistency_score: int
    productivity_trend: ProductivityTrend


@dataclass(frozen=True)
class RecommendationContext:
    """
    generation 1회 동안만 사용하는 읽기 전용 집계 객체.
    now 도 여기에 포함시켜 generator 가 시계를 직접 읽지 않도록 한다.
    """
    user_id: str
    learning_profile: LearningProfile
    performance: Tuple[SubjectPerformance, ...]
    analytics: StudyAnalytics
    recent_sessions: Tuple[StudySession, ...]
    active_goals: Tuple[str, ...]
    preferences: StudyPreferences
    now: datetime


# ------------------------------------------------------
# 추천 레코드
# ------------------------------------------------------
@dataclass
class ActionItem:
    id: str
    description: str
    kind: ActionItemKind
    estimated_minutes: Optional[int] = None
    is_completed: bool = False
    completed_at: Optional[datetime] = None

    def with_completion(self, completed: bool, now: datetime) -> "ActionItem":
        # completed_at 은 완료 상태일 때만 존재. 이미 완료된 항목은 기존 시각 유지.
        if completed:
            return replace(self, is_completed=True, completed_at=self.completed_at or now)
        return replace(self, is_completed=False, completed_at=None)


@dataclass
class RecommendationSnapshot:
    course_id: Optional[str] = None
    course_name: Optional[str] = None
    current_performance: Optional[float] = None
    recent_activity: List[str] = field(default_factory=list)
    time_of_day: Optional[str] = None
    study_streak: Optional[int] = None
    upcoming_deadlines: List[datetime] = field(default_factory=list)


@dataclass
class RecommendationMetadata:
    confidence: float
    data_points: List[str] = field(default_factory=list)
    algorithm_version: str = ""
    personalized_factors: List[str] = field(default_factory=list)
    related_insights: List[str] = field(default_factory=list)


@dataclass
class StudyRecommendation:
    id: str
    user_id: str
    type: RecommendationType
    priority: Priority
    title: str
    description: str
    reasoning: str
    action_items: List[ActionItem]
    estimated_impact: ImpactLevel
    time_to_implement: str
    category: RecommendationCategory
    context: RecommendationSnapshot
    metadata: RecommendationMetadata
    created_at: datetime
    is_active: bool = True
    is_applied: bool = False
    is_dismissed: bool = False
    applied_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.is_applied or self.is_dismissed

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass
class RecommendationFilters:
    type: Optional[RecommendationType] = None
    priority: Optional[Priority] = None
    category: Optional[RecommendationCategory] = None
    course_id: Optional[str] = None
    active_only: bool = True

    def matches(self, rec: StudyRecommendation) -> bool:
        if self.active_only and not (rec.is_active and not rec.is_dismissed):
            return False
        if self.type is not None and rec.type != self.type:
            return False
        if self.priority is not None and rec.priority != self.priority:
            return False
        if self.category is not None and rec.category != self.category:
            return False
        if self.course_id is not None and rec.context.course_id != self.course_id:
            return False
        return True


@dataclass
class RecommendationFeedback:
    id: str
    recommendation_id: str
    user_id: str
    created_at: datetime
    rating: Optional[int] = None
    feedback_text: Optional[str] = None
    was_helpful: Optional[bool] = None
    suggestions: Optional[str] = None


@dataclass
class RecommendationSummary:
    user_id: str
    total_recommendations: int = 0
    critical_count: int = 0
    high_count: int = 0
    applied_count: int = 0
    dismissed_count: int = 0
    active_count: int = 0
    average_rating: Optional[float] = None
    last_recommendation_at: Optional[datetime] = None


@dataclass
class TypeAnalytics:
    user_id: str
    recommendation_type: RecommendationType
    total_generated: int = 0
    total_applied: int = 0
    total_dismissed: int = 0
    average_rating: Optional[float] = None
    success_rate: Optional[float] = None
    last_generated_at: Optional[datetime] = None

