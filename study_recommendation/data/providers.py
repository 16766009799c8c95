from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional, Protocol

from pymongo import DESCENDING
from pymongo.asynchronous.database import AsyncDatabase

from ..models.data_models import (
    LearningProfile,
    StudyAnalytics,
    StudyPreferences,
    StudySession,
    SubjectPerformance,
    SubjectStatus,
)
from ..rule_based.study_patterns import build_study_analytics, to_local

ANALYTICS_LOOKBACK_DAYS = 365


# ------------------------------------------------------
# 외부 provider 계약 (엔진은 이 인터페이스에만 의존)
# ------------------------------------------------------
class PerformanceProvider(Protocol):
    async def analyze_all_subjects(self, user_id: str) -> List[SubjectPerformance]: ...


class ProfileProvider(Protocol):
    async def get_learning_profile(self, user_id: str) -> LearningProfile: ...

    async def get_study_preferences(self, user_id: str) -> StudyPreferences: ...

    async def get_active_goals(self, user_id: str) -> List[str]: ...


class ActivityProvider(Protocol):
    async def get_recent_sessions(self, user_id: str, days: int) -> List[StudySession]: ...

    async def get_study_analytics(self, user_id: str, tz: Optional[tzinfo] = None) -> StudyAnalytics: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


class MongoPerformanceProvider:
    """
    subject_performance 컬렉션에서 과목별 성과 레코드를 읽는다.
    status 는 외부(성과 분석 배치)에서 계산된 값을 그대로 신뢰한다.
    """

    def __init__(self, db: AsyncDatabase):
        self.col_performance = db["subject_performance"]

    @staticmethod
    def _doc_to_performance(doc: Dict[str, Any]) -> SubjectPerformance:
        return SubjectPerformance(
            course_id=str(doc.get("course_id")),
            course_name=doc.get("course_name") or "",
            performance_score=float(doc.get("performance_score") or 0),
            consistency_score=float(doc.get("consistency_score") or 0),
            study_frequency=float(doc.get("study_frequency") or 0),
            status=SubjectStatus(doc.get("status") or SubjectStatus.GOOD.value),
            last_studied_at=_parse_datetime(doc.get("last_studied_at")),
        )

    async def analyze_all_subjects(self, user_id: str) -> List[SubjectPerformance]:
        cursor = self.col_performance.find({"user_id": user_id})
        return [self._doc_to_performance(d) async for d in cursor]


class MongoActivityProvider:
    def __init__(self, db: AsyncDatabase, clock: Callable[[], datetime] = _utc_now):
        self.col_sessions = db["study_sessions"]
        self.clock = clock

    @staticmethod
    def _doc_to_session(doc: Dict[str, Any]) -> Optional[StudySession]:
        start = _parse_datetime(doc.get("start_time"))
        if start is None:
            return None
        return StudySession(
            session_id=str(doc["_id"]),
            start_time=start,
            duration_minutes=float(doc.get("duration_minutes") or 0),
            course_id=doc.get("course_id"),
            xp_earned=int(doc.get("xp_earned") or 0),
        )

    async def _sessions_since(self, user_id: str, since: datetime) -> List[StudySession]:
        cursor = (
            self.col_sessions.find({"user_id": user_id, "start_time": {"$gte": since}})
            .sort("start_time", DESCENDING)
        )
        sessions = [self._doc_to_session(d) async for d in cursor]
        return [s for s in sessions if s is not None]

    async def get_recent_sessions(self, user_id: str, days: int) -> List[StudySession]:
        return await self._sessions_since(user_id, self.clock() - timedelta(days=days))

    async def get_study_analytics(self, user_id: str, tz: Optional[tzinfo] = None) -> StudyAnalytics:
        now = self.clock()
        sessions = await self._sessions_since(user_id, now - timedelta(days=ANALYTICS_LOOKBACK_DAYS))
        return build_study_analytics(sessions, to_local(now, tz).date(), tz)
