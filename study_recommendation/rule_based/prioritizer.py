from __future__ import annotations

from typing import Iterable, List, Tuple

from ..models.data_models import ImpactLevel, Priority, StudyRecommendation

PRIORITY_RANK = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

IMPACT_RANK = {
    ImpactLevel.HIGH: 3,
    ImpactLevel.MEDIUM: 2,
    ImpactLevel.LOW: 1,
}


def sort_key(rec: StudyRecommendation) -> Tuple[int, int, float]:
    return (
        PRIORITY_RANK[rec.priority],
        IMPACT_RANK[rec.estimated_impact],
        float(rec.metadata.confidence),
    )


def prioritize(candidates: Iterable[StudyRecommendation]) -> List[StudyRecommendation]:
    """
    priority → impact → confidence 순으로 내림차순 정렬.
    sorted() 는 stable 이므로 완전 동률이면 입력 순서를 유지한다.
    """
    return sorted(candidates, key=sort_key, reverse=True)
