# study_recommendation/__init__.py

"""
학습 추천(Study Recommendation) 엔진 패키지 루트.

구성:
- models: 추천/성과/프로필 dataclass 및 enum
- data: Mongo / Postgres 기반 provider, 추천 저장소(store)
- rule_based: 5개의 룰 generator + prioritizer + 학습 패턴 분석
- service: RecommendationEngine (생성 + lifecycle)
- interface: 환경변수 기반 기본 엔진 구성
"""

from .errors import (
    DataUnavailableError,
    InvalidFeedbackError,
    NotFoundError,
    PersistenceWarning,
    RecommendationError,
)
from .service.engine import RecommendationEngine

__all__ = [
    "RecommendationEngine",
    "RecommendationError",
    "DataUnavailableError",
    "NotFoundError",
    "InvalidFeedbackError",
    "PersistenceWarning",
]
