from __future__ import annotations

import logging
import threading
from typing import List, Optional

from ..data.connection import ENABLE_MOTIVATION, HISTORY_DAYS, get_database
from ..data.providers import MongoActivityProvider, MongoPerformanceProvider
from ..data.store import MongoRecommendationStore
from ..rule_based.generators import DEFAULT_GENERATORS, MotivationRule, RuleGenerator
from ..service.engine import RecommendationEngine

logger = logging.getLogger(__name__)

# 기본 엔진 싱글톤 (HTTP 레이어에서만 사용, 테스트에서는 dependency override)
_engine_singleton: Optional[RecommendationEngine] = None
_engine_lock = threading.Lock()


def build_generators(enable_motivation: bool = ENABLE_MOTIVATION) -> List[RuleGenerator]:
    generators: List[RuleGenerator] = list(DEFAULT_GENERATORS)
    if enable_motivation:
        generators.append(MotivationRule())
    return generators


def build_default_engine() -> RecommendationEngine:
    """
    환경변수 설정으로 Mongo(성과/활동/추천 저장) + Postgres(프로필) 기반 엔진 구성.
    """
    from ..data.postgres_loader import PostgresProfileProvider

    db = get_database()
    engine = RecommendationEngine(
        performance_provider=MongoPerformanceProvider(db),
        profile_provider=PostgresProfileProvider(),
        activity_provider=MongoActivityProvider(db),
        store=MongoRecommendationStore(db),
        generators=build_generators(),
        history_days=HISTORY_DAYS,
    )
    logger.info(
        f"[Interface] default engine ready: generators={len(engine.generators)}, history_days={HISTORY_DAYS}"
    )
    return engine


def get_engine() -> RecommendationEngine:
    global _engine_singleton
    if _engine_singleton is None:
        # sync dependency 는 threadpool 에서 동시에 호출될 수 있음
        with _engine_lock:
            if _engine_singleton is None:
                _engine_singleton = build_default_engine()
    return _engine_singleton
