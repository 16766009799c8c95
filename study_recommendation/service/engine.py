from __future__ import annotations

import logging
import warnings
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar
from uuid import uuid4

import numpy as np

from ..data.providers import ActivityProvider, PerformanceProvider, ProfileProvider
from ..data.store import RecommendationStore
from ..errors import DataUnavailableError, InvalidFeedbackError, NotFoundError, PersistenceWarning
from ..models.data_models import (
    Priority,
    RecommendationContext,
    RecommendationFeedback,
    RecommendationFilters,
    RecommendationSummary,
    RecommendationType,
    StudyRecommendation,
    TypeAnalytics,
)
from ..rule_based.generators import DEFAULT_GENERATORS, RuleGenerator
from ..rule_based.prioritizer import prioritize
from ..rule_based.study_patterns import resolve_timezone

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_HISTORY_DAYS = 30
DISMISSED_RETENTION = timedelta(days=180)
FEEDBACK_RETENTION = timedelta(days=365)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecommendationEngine:
    """
    학습 추천 엔진.

    provider 3종과 store 를 생성자에서 주입받는다 (전역 상태 없음).
    generate() 는 context 구성 → generator 실행 → prioritize → 저장 순서로 동작하며,
    provider 실패는 DataUnavailableError 로 그대로 올려보내고
    저장 실패는 PersistenceWarning 만 남기고 결과는 그대로 반환한다.
    """

    def __init__(
        self,
        performance_provider: PerformanceProvider,
        profile_provider: ProfileProvider,
        activity_provider: ActivityProvider,
        store: RecommendationStore,
        generators: Optional[Sequence[RuleGenerator]] = None,
        history_days: int = DEFAULT_HISTORY_DAYS,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.performance_provider = performance_provider
        self.profile_provider = profile_provider
        self.activity_provider = activity_provider
        self.store = store
        self.generators: Sequence[RuleGenerator] = tuple(DEFAULT_GENERATORS if generators is None else generators)
        self.history_days = history_days
        self.clock = clock

    # ------------------------------------------------------
    # Context 구성
    # ------------------------------------------------------
    @staticmethod
    async def _fetch(source: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except Exception as exc:
            logger.error(f"[Engine] provider call failed: {source}: {exc}")
            raise DataUnavailableError(source) from exc

    async def build_context(self, user_id: str) -> RecommendationContext:
        performance = await self._fetch(
            "analyze_all_subjects", self.performance_provider.analyze_all_subjects(user_id)
        )
        profile = await self._fetch(
            "get_learning_profile", self.profile_provider.get_learning_profile(user_id)
        )
        preferences = await self._fetch(
            "get_study_preferences", self.profile_provider.get_study_preferences(user_id)
        )
        # streak / 요일 집계는 사용자 시간대 기준
        tz = resolve_timezone(preferences.timezone)
        analytics = await self._fetch(
            "get_study_analytics", self.activity_provider.get_study_analytics(user_id, tz)
        )
        sessions = await self._fetch(
            "get_recent_sessions", self.activity_provider.get_recent_sessions(user_id, self.history_days)
        )
        goals = await self._fetch(
            "get_active_goals", self.profile_provider.get_active_goals(user_id)
        )

        return RecommendationContext(
            user_id=user_id,
            learning_profile=profile,
            performance=tuple(performance or ()),
            analytics=analytics,
            recent_sessions=tuple(sessions or ()),
            active_goals=tuple(goals or ()),
            preferences=preferences,
            now=self.clock(),
        )

    # ------------------------------------------------------
    # Generation
    # ------------------------------------------------------
    async def generate(self, user_id: str) -> List[StudyRecommendation]:
        logger.info(f"[Engine] generation start: user_id={user_id}")

        context = await self.build_context(user_id)

        candidates: List[StudyRecommendation] = []
        for generator in self.generators:
            recs = generator(context)
            name = getattr(generator, "__name__", type(generator).__name__)
            logger.info(f"[Engine]   {name}: {len(recs)} candidates")
            candidates.extend(recs)

        ranked = prioritize(candidates)
        logger.info(f"[Engine] {len(ranked)} recommendations prioritized")

        try:
            await self.store.upsert(ranked)
        except Exception as exc:
            # 저장 실패해도 생성 결과는 반환
            logger.error(f"[Engine] failed to persist recommendations for user_id={user_id}: {exc}")
            warnings.warn(
                PersistenceWarning(f"recommendations for {user_id} were not persisted: {exc}"),
                stacklevel=2,
            )
        else:
            logger.info(f"[Engine] persisted {len(ranked)} recommendations")

        return ranked

    # ------------------------------------------------------
    # 조회
    # ------------------------------------------------------
    async def get_active_recommendations(
        self,
        user_id: str,
        filters: Optional[RecommendationFilters] = None,
    ) -> List[StudyRecommendation]:
        filters = replace(filters, active_only=True) if filters else RecommendationFilters()

        now = self.clock()
        recs = await self.store.query(user_id, filters)
        return [r for r in recs if r.is_active and not r.is_dismissed and not r.is_expired(now)]

    async def get_recommendation(self, recommendation_id: str) -> StudyRecommendation:
        rec = await self.store.get(recommendation_id)
        if rec is None:
            raise NotFoundError("recommendation", recommendation_id)
        return rec

    async def _update(self, recommendation_id: str, patch: Dict[str, Any]) -> StudyRecommendation:
        updated = await self.store.update(recommendation_id, patch)
        if updated is None:
            raise NotFoundError("recommendation", recommendation_id)
        return updated

    # ------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------
    async def apply_recommendation(self, recommendation_id: str) -> StudyRecommendation:
        rec = await self.get_recommendation(recommendation_id)
        if rec.is_terminal:
            # 이미 applied/dismissed 된 레코드는 타임스탬프를 옮기지 않는다
            logger.info(f"[Engine] apply skipped, already terminal: {recommendation_id}")
            return rec

        return await self._update(recommendation_id, {
            "is_applied": True,
            "applied_at": self.clock(),
            "is_active": False,
        })

    async def dismiss_recommendation(self, recommendation_id: str) -> StudyRecommendation:
        rec = await self.get_recommendation(recommendation_id)
        if rec.is_terminal:
            logger.info(f"[Engine] dismiss skipped, already terminal: {recommendation_id}")
            return rec

        return await self._update(recommendation_id, {
            "is_dismissed": True,
            "dismissed_at": self.clock(),
            "is_active": False,
        })

    async def update_action_item(
        self,
        recommendation_id: str,
        action_item_id: str,
        completed: bool,
    ) -> StudyRecommendation:
        rec = await self.get_recommendation(recommendation_id)
        if not any(item.id == action_item_id for item in rec.action_items):
            raise NotFoundError("action_item", action_item_id)

        now = self.clock()
        items = [
            item.with_completion(completed, now) if item.id == action_item_id else item
            for item in rec.action_items
        ]
        return await self._update(recommendation_id, {"action_items": items})

    # ------------------------------------------------------
    # Feedback / 통계
    # ------------------------------------------------------
    async def submit_feedback(
        self,
        recommendation_id: str,
        user_id: str,
        rating: Optional[int] = None,
        feedback_text: Optional[str] = None,
        was_helpful: Optional[bool] = None,
        suggestions: Optional[str] = None,
    ) -> RecommendationFeedback:
        if rating is not None and not 1 <= rating <= 5:
            raise InvalidFeedbackError(f"rating must be between 1 and 5, got {rating}")
        if rating is None and was_helpful is None and not feedback_text and not suggestions:
            raise InvalidFeedbackError("feedback must contain a rating, a helpful flag or text")

        rec = await self.get_recommendation(recommendation_id)
        if rec.user_id != user_id:
            raise NotFoundError("recommendation", recommendation_id)

        feedback = RecommendationFeedback(
            id=str(uuid4()),
            recommendation_id=recommendation_id,
            user_id=user_id,
            created_at=self.clock(),
            rating=rating,
            feedback_text=feedback_text,
            was_helpful=was_helpful,
            suggestions=suggestions,
        )
        await self.store.add_feedback(feedback)
        logger.info(f"[Engine] feedback stored: recommendation_id={recommendation_id}, rating={rating}")
        return feedback

    async def get_summary(self, user_id: str) -> RecommendationSummary:
        recs = await self.store.query(user_id, RecommendationFilters(active_only=False))
        feedback = await self.store.list_feedback(user_id)
        ratings = [f.rating for f in feedback if f.rating is not None]

        return RecommendationSummary(
            user_id=user_id,
            total_recommendations=len(recs),
            critical_count=sum(1 for r in recs if r.priority == Priority.CRITICAL),
            high_count=sum(1 for r in recs if r.priority == Priority.HIGH),
            applied_count=sum(1 for r in recs if r.is_applied),
            dismissed_count=sum(1 for r in recs if r.is_dismissed),
            active_count=sum(1 for r in recs if r.is_active and not r.is_dismissed),
            average_rating=round(float(np.mean(ratings)), 2) if ratings else None,
            last_recommendation_at=max((r.created_at for r in recs), default=None),
        )

    async def get_type_analytics(self, user_id: str) -> List[TypeAnalytics]:
        recs = await self.store.query(user_id, RecommendationFilters(active_only=False))
        feedback = await self.store.list_feedback(user_id)

        rec_types = {r.id: r.type for r in recs}
        ratings_by_type: Dict[RecommendationType, List[int]] = defaultdict(list)
        for fb in feedback:
            if fb.rating is not None and fb.recommendation_id in rec_types:
                ratings_by_type[rec_types[fb.recommendation_id]].append(fb.rating)

        by_type: Dict[RecommendationType, TypeAnalytics] = {}
        for rec in recs:
            stats = by_type.setdefault(rec.type, TypeAnalytics(user_id=user_id, recommendation_type=rec.type))
            stats.total_generated += 1
            stats.total_applied += int(rec.is_applied)
            stats.total_dismissed += int(rec.is_dismissed)
            if stats.last_generated_at is None or rec.created_at > stats.last_generated_at:
                stats.last_generated_at = rec.created_at

        for rec_type, stats in by_type.items():
            ratings = ratings_by_type.get(rec_type)
            stats.average_rating = round(float(np.mean(ratings)), 2) if ratings else None
            stats.success_rate = round(stats.total_applied / stats.total_generated * 100, 2)

        return sorted(by_type.values(), key=lambda s: s.recommendation_type.value)

    # ------------------------------------------------------
    # Maintenance (만료 / 보존 기간 정리)
    # ------------------------------------------------------
    async def expire_stale(self) -> int:
        count = await self.store.expire(self.clock())
        logger.info(f"[Engine] expired {count} recommendations")
        return count

    async def cleanup(self) -> Dict[str, int]:
        now = self.clock()
        removed = {
            "dismissed_recommendations": await self.store.delete_dismissed_before(now - DISMISSED_RETENTION),
            "feedback": await self.store.delete_feedback_before(now - FEEDBACK_RETENTION),
        }
        logger.info(f"[Engine] cleanup: {removed}")
        return removed
