from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pymongo import DESCENDING, ReplaceOne, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from ..models.data_models import (
    ActionItem,
    ActionItemKind,
    ImpactLevel,
    Priority,
    RecommendationCategory,
    RecommendationFeedback,
    RecommendationFilters,
    RecommendationMetadata,
    RecommendationSnapshot,
    RecommendationType,
    StudyRecommendation,
)

logger = logging.getLogger(__name__)


class RecommendationStore(Protocol):
    """
    추천 레코드 저장소 계약.
    update() 의 patch 는 StudyRecommendation 필드명 → 값 (대상이 없으면 None 반환).
    """

    async def upsert(self, recommendations: Sequence[StudyRecommendation]) -> None: ...

    async def get(self, recommendation_id: str) -> Optional[StudyRecommendation]: ...

    async def query(self, user_id: str, filters: Optional[RecommendationFilters] = None) -> List[StudyRecommendation]: ...

    async def update(self, recommendation_id: str, patch: Dict[str, Any]) -> Optional[StudyRecommendation]: ...

    async def expire(self, now: datetime) -> int: ...

    async def delete_dismissed_before(self, cutoff: datetime) -> int: ...

    async def add_feedback(self, feedback: RecommendationFeedback) -> None: ...

    async def list_feedback(self, user_id: str) -> List[RecommendationFeedback]: ...

    async def delete_feedback_before(self, cutoff: datetime) -> int: ...


# ------------------------------------------------------
# dataclass <-> document 변환
# ------------------------------------------------------
def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def action_item_to_doc(item: ActionItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "description": item.description,
        "type": item.kind.value,
        "estimated_time": item.estimated_minutes,
        "is_completed": item.is_completed,
        "completed_at": item.completed_at,
    }


def doc_to_action_item(doc: Dict[str, Any]) -> ActionItem:
    return ActionItem(
        id=doc["id"],
        description=doc.get("description", ""),
        kind=ActionItemKind(doc.get("type", ActionItemKind.TASK.value)),
        estimated_minutes=doc.get("estimated_time"),
        is_completed=bool(doc.get("is_completed")),
        completed_at=_aware(doc.get("completed_at")),
    )


def recommendation_to_doc(rec: StudyRecommendation) -> Dict[str, Any]:
    ctx = rec.context
    meta = rec.metadata
    return {
        "_id": rec.id,
        "user_id": rec.user_id,
        "type": rec.type.value,
        "priority": rec.priority.value,
        "title": rec.title,
        "description": rec.description,
        "reasoning": rec.reasoning,
        "action_items": [action_item_to_doc(i) for i in rec.action_items],
        "estimated_impact": rec.estimated_impact.value,
        "time_to_implement": rec.time_to_implement,
        "category": rec.category.value,
        "context": {
            "course_id": ctx.course_id,
            "course_name": ctx.course_name,
            "current_performance": ctx.current_performance,
            "recent_activity": list(ctx.recent_activity),
            "time_of_day": ctx.time_of_day,
            "study_streak": ctx.study_streak,
            "upcoming_deadlines": list(ctx.upcoming_deadlines),
        },
        "metadata": {
            "confidence": meta.confidence,
            "data_points": list(meta.data_points),
            "algorithm_version": meta.algorithm_version,
            "personalized_factors": list(meta.personalized_factors),
            "related_insights": list(meta.related_insights),
        },
        "is_active": rec.is_active,
        "is_applied": rec.is_applied,
        "is_dismissed": rec.is_dismissed,
        "created_at": rec.created_at,
        "applied_at": rec.applied_at,
        "dismissed_at": rec.dismissed_at,
        "expires_at": rec.expires_at,
    }


def doc_to_recommendation(doc: Dict[str, Any]) -> StudyRecommendation:
    ctx = doc.get("context") or {}
    meta = doc.get("metadata") or {}
    return StudyRecommendation(
        id=str(doc["_id"]),
        user_id=doc["user_id"],
        type=RecommendationType(doc["type"]),
        priority=Priority(doc["priority"]),
        title=doc.get("title", ""),
        description=doc.get("description", ""),
        reasoning=doc.get("reasoning", ""),
        action_items=[doc_to_action_item(i) for i in doc.get("action_items") or []],
        estimated_impact=ImpactLevel(doc["estimated_impact"]),
        time_to_implement=doc.get("time_to_implement", ""),
        category=RecommendationCategory(doc["category"]),
        context=RecommendationSnapshot(
            course_id=ctx.get("course_id"),
            course_name=ctx.get("course_name"),
            current_performance=ctx.get("current_performance"),
            recent_activity=list(ctx.get("recent_activity") or []),
            time_of_day=ctx.get("time_of_day"),
            study_streak=ctx.get("study_streak"),
            upcoming_deadlines=[_aware(d) for d in ctx.get("upcoming_deadlines") or []],
        ),
        metadata=RecommendationMetadata(
            confidence=float(meta.get("confidence", 0.0)),
            data_points=list(meta.get("data_points") or []),
            algorithm_version=meta.get("algorithm_version", ""),
            personalized_factors=list(meta.get("personalized_factors") or []),
            related_insights=list(meta.get("related_insights") or []),
        ),
        created_at=_aware(doc["created_at"]),
        is_active=bool(doc.get("is_active", True)),
        is_applied=bool(doc.get("is_applied", False)),
        is_dismissed=bool(doc.get("is_dismissed", False)),
        applied_at=_aware(doc.get("applied_at")),
        dismissed_at=_aware(doc.get("dismissed_at")),
        expires_at=_aware(doc.get("expires_at")),
    )


def patch_to_doc(patch: Dict[str, Any]) -> Dict[str, Any]:
    doc: Dict[str, Any] = {}
    for key, value in patch.items():
        if key == "action_items":
            doc[key] = [action_item_to_doc(i) for i in value]
        else:
            doc[key] = getattr(value, "value", value)  # enum → 문자열
    return doc


def feedback_to_doc(fb: RecommendationFeedback) -> Dict[str, Any]:
    return {
        "_id": fb.id,
        "recommendation_id": fb.recommendation_id,
        "user_id": fb.user_id,
        "rating": fb.rating,
        "feedback_text": fb.feedback_text,
        "was_helpful": fb.was_helpful,
        "suggestions": fb.suggestions,
        "created_at": fb.created_at,
    }


def doc_to_feedback(doc: Dict[str, Any]) -> RecommendationFeedback:
    return RecommendationFeedback(
        id=str(doc["_id"]),
        recommendation_id=doc["recommendation_id"],
        user_id=doc["user_id"],
        created_at=_aware(doc["created_at"]),
        rating=doc.get("rating"),
        feedback_text=doc.get("feedback_text"),
        was_helpful=doc.get("was_helpful"),
        suggestions=doc.get("suggestions"),
    )


def filters_to_query(user_id: str, filters: RecommendationFilters) -> Dict[str, Any]:
    query: Dict[str, Any] = {"user_id": user_id}
    if filters.active_only:
        query["is_active"] = True
        query["is_dismissed"] = False
    if filters.type is not None:
        query["type"] = filters.type.value
    if filters.priority is not None:
        query["priority"] = filters.priority.value
    if filters.category is not None:
        query["category"] = filters.category.value
    if filters.course_id is not None:
        query["context.course_id"] = filters.course_id
    return query


class MongoRecommendationStore:
    """
    study_recommendations / recommendation_feedback 컬렉션 기반 저장소.
    """

    def __init__(self, db: AsyncDatabase):
        self.col_recommendations = db["study_recommendations"]
        self.col_feedback = db["recommendation_feedback"]

    async def ensure_indexes(self) -> None:
        await self.col_recommendations.create_index([("user_id", 1), ("is_active", 1), ("is_dismissed", 1)])
        await self.col_recommendations.create_index([("user_id", 1), ("priority", 1), ("created_at", DESCENDING)])
        await self.col_recommendations.create_index("expires_at")
        await self.col_feedback.create_index("recommendation_id")
        await self.col_feedback.create_index("user_id")

    async def upsert(self, recommendations: Sequence[StudyRecommendation]) -> None:
        if not recommendations:
            return
        now = datetime.now(timezone.utc)
        ops = []
        for rec in recommendations:
            doc = recommendation_to_doc(rec)
            doc["updated_at"] = now
            ops.append(ReplaceOne({"_id": rec.id}, doc, upsert=True))
        result = await self.col_recommendations.bulk_write(ops, ordered=False)
        logger.info(
            f"[Store] upsert: {len(ops)} recommendations "
            f"(inserted={result.upserted_count}, modified={result.modified_count})"
        )

    async def get(self, recommendation_id: str) -> Optional[StudyRecommendation]:
        doc = await self.col_recommendations.find_one({"_id": recommendation_id})
        return doc_to_recommendation(doc) if doc else None

    async def query(self, user_id: str, filters: Optional[RecommendationFilters] = None) -> List[StudyRecommendation]:
        query = filters_to_query(user_id, filters or RecommendationFilters())
        cursor = self.col_recommendations.find(query).sort("created_at", DESCENDING)
        return [doc_to_recommendation(d) async for d in cursor]

    async def update(self, recommendation_id: str, patch: Dict[str, Any]) -> Optional[StudyRecommendation]:
        changes = patch_to_doc(patch)
        changes["updated_at"] = datetime.now(timezone.utc)
        doc = await self.col_recommendations.find_one_and_update(
            {"_id": recommendation_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return doc_to_recommendation(doc) if doc else None

    async def expire(self, now: datetime) -> int:
        result = await self.col_recommendations.update_many(
            {"expires_at": {"$ne": None, "$lte": now}, "is_active": True},
            {"$set": {"is_active": False, "updated_at": now}},
        )
        return result.modified_count

    async def delete_dismissed_before(self, cutoff: datetime) -> int:
        result = await self.col_recommendations.delete_many(
            {"is_dismissed": True, "dismissed_at": {"$lt": cutoff}}
        )
        return result.deleted_count

    async def add_feedback(self, feedback: RecommendationFeedback) -> None:
        await self.col_feedback.insert_one(feedback_to_doc(feedback))

    async def list_feedback(self, user_id: str) -> List[RecommendationFeedback]:
        cursor = self.col_feedback.find({"user_id": user_id}).sort("created_at", DESCENDING)
        return [doc_to_feedback(d) async for d in cursor]

    async def delete_feedback_before(self, cutoff: datetime) -> int:
        result = await self.col_feedback.delete_many({"created_at": {"$lt": cutoff}})
        return result.deleted_count
