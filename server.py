"""
학습 추천 서버 - FastAPI 메인 파일.

Rule-based 학습 추천 생성 / 조회 / lifecycle(apply, dismiss, action item) API를 제공합니다.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from study_recommendation.data.store import MongoRecommendationStore
from study_recommendation.errors import DataUnavailableError, InvalidFeedbackError, NotFoundError
from study_recommendation.interface.api_interface import get_engine
from study_recommendation.models.data_models import (
    ActionItemKind,
    ImpactLevel,
    Priority,
    RecommendationCategory,
    RecommendationFilters,
    RecommendationType,
)
from study_recommendation.service.engine import RecommendationEngine

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# --- Schemas ---


class ActionItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    description: str
    kind: ActionItemKind
    estimated_minutes: Optional[int] = None
    is_completed: bool
    completed_at: Optional[datetime] = None


class SnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: Optional[str] = None
    course_name: Optional[str] = None
    current_performance: Optional[float] = None
    recent_activity: List[str] = []
    time_of_day: Optional[str] = None
    study_streak: Optional[int] = None
    upcoming_deadlines: List[datetime] = []


class MetadataOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    confidence: float
    data_points: List[str] = []
    algorithm_version: str
    personalized_factors: List[str] = []
    related_insights: List[str] = []


class RecommendationOut(BaseModel):
    """개별 학습 추천"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: RecommendationType
    priority: Priority
    title: str
    description: str
    reasoning: str
    action_items: List[ActionItemOut]
    estimated_impact: ImpactLevel
    time_to_implement: str
    category: RecommendationCategory
    context: SnapshotOut
    metadata: MetadataOut
    is_active: bool
    is_applied: bool
    is_dismissed: bool
    created_at: datetime
    applied_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class RecommendationListResponse(BaseModel):
    user_id: str
    recommendations: List[RecommendationOut]
    total_count: int
    timestamp: str


class ActionItemUpdateRequest(BaseModel):
    completed: bool


class FeedbackRequest(BaseModel):
    user_id: str
    rating: Optional[int] = None
    feedback_text: Optional[str] = None
    was_helpful: Optional[bool] = None
    suggestions: Optional[str] = None


class FeedbackResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recommendation_id: str
    user_id: str
    rating: Optional[int] = None
    was_helpful: Optional[bool] = None
    created_at: datetime


class SummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    total_recommendations: int
    critical_count: int
    high_count: int
    applied_count: int
    dismissed_count: int
    active_count: int
    average_rating: Optional[float] = None
    last_recommendation_at: Optional[datetime] = None


class TypeAnalyticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    recommendation_type: RecommendationType
    total_generated: int
    total_applied: int
    total_dismissed: int
    average_rating: Optional[float] = None
    success_rate: Optional[float] = None
    last_generated_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    """헬스 체크 응답"""
    status: str
    service: str
    version: str


# --- Helper Functions ---


def to_list_response(user_id: str, recs) -> RecommendationListResponse:
    items = [RecommendationOut.model_validate(r) for r in recs]
    return RecommendationListResponse(
        user_id=user_id,
        recommendations=items,
        total_count=len(items),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def raise_http(e: Exception, action: str):
    """도메인 에러 → HTTP 상태 코드"""
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidFeedbackError):
        raise HTTPException(status_code=422, detail=str(e))
    if isinstance(e, DataUnavailableError):
        raise HTTPException(status_code=503, detail=f"{action} 실패: {e}")
    logger.error(f"[API] {action} error: {e}")
    raise HTTPException(status_code=500, detail=f"{action} 실패: {str(e)}")


# --- Lifespan ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 시작 및 종료"""
    logger.info("[Startup] Study Recommendation Server starting...")

    try:
        engine = app.dependency_overrides.get(get_engine, get_engine)()
        if isinstance(engine.store, MongoRecommendationStore):
            logger.info("[Startup] Ensuring recommendation indexes...")
            await engine.store.ensure_indexes()
        logger.info("[Startup] Recommendation engine ready")
    except Exception as e:
        logger.warning(f"[Startup] Engine warmup failed (will retry on first request): {e}")

    yield

    logger.info("[Shutdown] Study Recommendation Server shutting down...")


app = FastAPI(
    title="Study Recommendation Server",
    description="Rule-based 학습 추천 생성 및 lifecycle 관리 API",
    version="1.0.0",
    lifespan=lifespan,
)


# --- API Endpoints ---


@app.get("/")
def root():
    """루트 엔드포인트"""
    return {
        "message": "Study Recommendation Server",
        "version": "1.0.0",
        "endpoints": [
            "/health",
            "/recommendations",
            "/recommendations/generate",
            "/recommendations/summary",
            "/recommendations/analytics",
            "/recommendations/maintenance",
            "/recommendations/{recommendation_id}",
            "/recommendations/{recommendation_id}/apply",
            "/recommendations/{recommendation_id}/dismiss",
            "/recommendations/{recommendation_id}/action-items/{action_item_id}",
            "/recommendations/{recommendation_id}/feedback",
        ],
    }


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """헬스 체크"""
    return HealthResponse(
        status="ok",
        service="study-recommendation",
        version="1.0.0",
    )


@app.post("/recommendations/generate", response_model=RecommendationListResponse)
async def generate_recommendations(
    user_id: str = Query(..., description="사용자 ID"),
    engine: RecommendationEngine = Depends(get_engine),
):
    """
    새 추천 생성.

    성과 / 프로필 / 학습 활동 데이터를 모아 5개 룰을 실행하고
    priority → impact → confidence 순으로 정렬된 결과를 저장 후 반환합니다.
    """
    try:
        logger.info(f"[API] Generate recommendations: user_id={user_id}")
        recs = await engine.generate(user_id)
        logger.info(f"[API] Generated {len(recs)} recommendations")
        return to_list_response(user_id, recs)
    except Exception as e:
        raise_http(e, "추천 생성")


@app.get("/recommendations", response_model=RecommendationListResponse)
async def get_active_recommendations(
    user_id: str = Query(..., description="사용자 ID"),
    type: Optional[RecommendationType] = Query(None, description="추천 유형"),
    priority: Optional[Priority] = Query(None, description="우선순위"),
    category: Optional[RecommendationCategory] = Query(None, description="카테고리"),
    course_id: Optional[str] = Query(None, description="과목 ID"),
    engine: RecommendationEngine = Depends(get_engine),
):
    """활성 추천 조회 (dismiss / 만료된 추천 제외)"""
    try:
        filters = RecommendationFilters(type=type, priority=priority, category=category, course_id=course_id)
        recs = await engine.get_active_recommendations(user_id, filters)
        return to_list_response(user_id, recs)
    except Exception as e:
        raise_http(e, "추천 조회")


@app.get("/recommendations/summary", response_model=SummaryResponse)
async def get_summary(
    user_id: str = Query(..., description="사용자 ID"),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        summary = await engine.get_summary(user_id)
        return SummaryResponse.model_validate(summary)
    except Exception as e:
        raise_http(e, "추천 요약")


@app.get("/recommendations/analytics", response_model=List[TypeAnalyticsResponse])
async def get_type_analytics(
    user_id: str = Query(..., description="사용자 ID"),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        stats = await engine.get_type_analytics(user_id)
        return [TypeAnalyticsResponse.model_validate(s) for s in stats]
    except Exception as e:
        raise_http(e, "추천 통계")


@app.post("/recommendations/maintenance")
async def run_maintenance(engine: RecommendationEngine = Depends(get_engine)) -> Dict[str, int]:
    """만료 추천 비활성화 + 보존 기간 지난 레코드 정리"""
    try:
        expired = await engine.expire_stale()
        removed = await engine.cleanup()
        return {"expired": expired, **removed}
    except Exception as e:
        raise_http(e, "추천 정리")


@app.get("/recommendations/{recommendation_id}", response_model=RecommendationOut)
async def get_recommendation(
    recommendation_id: str,
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        rec = await engine.get_recommendation(recommendation_id)
        return RecommendationOut.model_validate(rec)
    except Exception as e:
        raise_http(e, "추천 조회")


@app.post("/recommendations/{recommendation_id}/apply", response_model=RecommendationOut)
async def apply_recommendation(
    recommendation_id: str,
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        logger.info(f"[API] Apply: recommendation_id={recommendation_id}")
        rec = await engine.apply_recommendation(recommendation_id)
        return RecommendationOut.model_validate(rec)
    except Exception as e:
        raise_http(e, "추천 적용")


@app.post("/recommendations/{recommendation_id}/dismiss", response_model=RecommendationOut)
async def dismiss_recommendation(
    recommendation_id: str,
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        logger.info(f"[API] Dismiss: recommendation_id={recommendation_id}")
        rec = await engine.dismiss_recommendation(recommendation_id)
        return RecommendationOut.model_validate(rec)
    except Exception as e:
        raise_http(e, "추천 닫기")


@app.patch(
    "/recommendations/{recommendation_id}/action-items/{action_item_id}",
    response_model=RecommendationOut,
)
async def update_action_item(
    recommendation_id: str,
    action_item_id: str,
    request: ActionItemUpdateRequest,
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        rec = await engine.update_action_item(recommendation_id, action_item_id, request.completed)
        return RecommendationOut.model_validate(rec)
    except Exception as e:
        raise_http(e, "액션 아이템 업데이트")


@app.post("/recommendations/{recommendation_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    recommendation_id: str,
    request: FeedbackRequest,
    engine: RecommendationEngine = Depends(get_engine),
):
    """
    추천 피드백 기록.

    - rating: 1~5 (선택)
    - was_helpful / feedback_text / suggestions 중 최소 하나는 필요
    """
    try:
        fb = await engine.submit_feedback(
            recommendation_id,
            user_id=request.user_id,
            rating=request.rating,
            feedback_text=request.feedback_text,
            was_helpful=request.was_helpful,
            suggestions=request.suggestions,
        )
        return FeedbackResponse.model_validate(fb)
    except Exception as e:
        raise_http(e, "피드백 저장")


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "server:app",
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8000")),
    )
