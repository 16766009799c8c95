from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..models.data_models import RecommendationFeedback, RecommendationFilters, StudyRecommendation
from .store import (
    doc_to_feedback,
    doc_to_recommendation,
    feedback_to_doc,
    patch_to_doc,
    recommendation_to_doc,
)


class InMemoryRecommendationStore:
    """
    프로세스 내부 dict 기반 RecommendationStore (데모 / 테스트용).
    Mongo 저장소와 같은 document 변환을 거치므로 반환 객체는 항상 복사본이다.
    """

    def __init__(self):
        self._recommendations: Dict[str, Dict[str, Any]] = {}
        self._feedback: Dict[str, Dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._recommendations)

    async def upsert(self, recommendations: Sequence[StudyRecommendation]) -> None:
        for rec in recommendations:
            self._recommendations[rec.id] = recommendation_to_doc(copy.deepcopy(rec))

    async def get(self, recommendation_id: str) -> Optional[StudyRecommendation]:
        doc = self._recommendations.get(recommendation_id)
        return doc_to_recommendation(copy.deepcopy(doc)) if doc else None

    async def query(self, user_id: str, filters: Optional[RecommendationFilters] = None) -> List[StudyRecommendation]:
        filters = filters or RecommendationFilters()
        recs = [
            doc_to_recommendation(copy.deepcopy(doc))
            for doc in self._recommendations.values()
            if doc["user_id"] == user_id
        ]
        recs = [r for r in recs if filters.matches(r)]
        recs.sort(key=lambda r: r.created_at, reverse=True)
        return recs

    async def update(self, recommendation_id: str, patch: Dict[str, Any]) -> Optional[StudyRecommendation]:
        doc = self._recommendations.get(recommendation_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(patch_to_doc(patch)))
        return doc_to_recommendation(copy.deepcopy(doc))

    async def expire(self, now: datetime) -> int:
        count = 0
        for doc in self._recommendations.values():
            expires_at = doc.get("expires_at")
            if doc["is_active"] and expires_at is not None and expires_at <= now:
                doc["is_active"] = False
                count += 1
        return count

    async def delete_dismissed_before(self, cutoff: datetime) -> int:
        stale = [
            rec_id for rec_id, doc in self._recommendations.items()
            if doc["is_dismissed"] and doc.get("dismissed_at") and doc["dismissed_at"] < cutoff
        ]
        for rec_id in stale:
            del self._recommendations[rec_id]
        return len(stale)

    async def add_feedback(self, feedback: RecommendationFeedback) -> None:
        self._feedback[feedback.id] = feedback_to_doc(feedback)

    async def list_feedback(self, user_id: str) -> List[RecommendationFeedback]:
        docs = [d for d in self._feedback.values() if d["user_id"] == user_id]
        docs.sort(key=lambda d: d["created_at"], reverse=True)
        return [doc_to_feedback(d) for d in docs]

    async def delete_feedback_before(self, cutoff: datetime) -> int:
        stale = [fb_id for fb_id, doc in self._feedback.items() if doc["created_at"] < cutoff]
        for fb_id in stale:
            del self._feedback[fb_id]
        return len(stale)
