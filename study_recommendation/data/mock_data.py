from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import List, Optional, Sequence

from ..models.data_models import (
    LearningProfile,
    MotivationStyle,
    StudyAnalytics,
    StudyPreferences,
    StudySession,
    SubjectPerformance,
    SubjectStatus,
)
from ..rule_based.study_patterns import build_study_analytics, to_local


def get_mock_performance() -> List[SubjectPerformance]:
    return [
        SubjectPerformance(
            course_id="math-101",
            course_name="Calculus I",
            performance_score=42,
            consistency_score=35,
            study_frequency=1,
            status=SubjectStatus.CRITICAL,
        ),
        SubjectPerformance(
            course_id="phys-110",
            course_name="Physics Basics",
            performance_score=58,
            consistency_score=62,
            study_frequency=3,
            status=SubjectStatus.NEEDS_ATTENTION,
        ),
        SubjectPerformance(
            course_id="chem-120",
            course_name="General Chemistry",
            performance_score=81,
            consistency_score=78,
            study_frequency=4,
            status=SubjectStatus.GOOD,
        ),
    ]


def get_mock_sessions(now: datetime) -> List[StudySession]:
    # 대부분 저녁 20~21시에 공부한 기록
    sessions = []
    for i, (days_ago, hour, minutes, xp) in enumerate([
        (1, 20, 75, 40),
        (2, 20, 80, 45),
        (4, 21, 70, 50),
        (5, 20, 90, 60),
        (8, 21, 65, 70),
        (9, 14, 60, 80),
    ]):
        start = (now - timedelta(days=days_ago)).replace(hour=hour, minute=0, second=0, microsecond=0)
        sessions.append(StudySession(
            session_id=f"mock-session-{i}",
            start_time=start,
            duration_minutes=minutes,
            xp_earned=xp,
        ))
    return sessions


def get_mock_profile() -> LearningProfile:
    return LearningProfile(
        learning_styles=("visual", "reading_writing"),
        attention_span=45,
        best_study_times=("09:00-11:00", "14:00-16:00"),
    )


def get_mock_preferences() -> StudyPreferences:
    return StudyPreferences(
        preferred_study_times=("09:00-11:00", "14:00-16:00"),
        max_session_length=60,
        break_frequency=25,
        motivation_style=MotivationStyle.PERSONAL,
    )


class MockPerformanceProvider:
    def __init__(self, performance: Optional[Sequence[SubjectPerformance]] = None):
        self.performance = list(get_mock_performance() if performance is None else performance)

    async def analyze_all_subjects(self, user_id: str) -> List[SubjectPerformance]:
        return list(self.performance)


class MockProfileProvider:
    def __init__(
        self,
        profile: Optional[LearningProfile] = None,
        preferences: Optional[StudyPreferences] = None,
        goals: Optional[Sequence[str]] = None,
    ):
        self.profile = profile or get_mock_profile()
        self.preferences = preferences or get_mock_preferences()
        self.goals = list(
            ["Complete Math Course", "Improve Physics Grade", "Master Chemistry Basics"]
            if goals is None else goals
        )

    async def get_learning_profile(self, user_id: str) -> LearningProfile:
        return self.profile

    async def get_study_preferences(self, user_id: str) -> StudyPreferences:
        return self.preferences

    async def get_active_goals(self, user_id: str) -> List[str]:
        return list(self.goals)


class MockActivityProvider:
    """analytics 를 지정하지 않으면 세션 목록에서 계산한다."""

    def __init__(
        self,
        sessions: Optional[Sequence[StudySession]] = None,
        analytics: Optional[StudyAnalytics] = None,
        now: Optional[datetime] = None,
    ):
        self.now = now or datetime.now(timezone.utc)
        self.sessions = list(get_mock_sessions(self.now) if sessions is None else sessions)
        self.analytics = analytics

    async def get_recent_sessions(self, user_id: str, days: int) -> List[StudySession]:
        since = self.now - timedelta(days=days)
        return [s for s in self.sessions if s.start_time >= since]

    async def get_study_analytics(self, user_id: str, tz: Optional[tzinfo] = None) -> StudyAnalytics:
        if self.analytics is not None:
            return self.analytics
        return build_study_analytics(self.sessions, to_local(self.now, tz).date(), tz)
