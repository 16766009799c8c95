from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2.extras import RealDictCursor

from ..models.data_models import LearningProfile, MotivationStyle, StudyPreferences


PG_HOST = os.getenv("PG_HOST", "127.0.0.1")
PG_PORT = int(os.getenv("PG_PORT", "5432"))
PG_DBNAME = os.getenv("PG_DBNAME", "study_platform")
PG_USER = os.getenv("PG_USER", "postgres")
PG_PASSWORD = os.getenv("PG_PASSWORD", "")


def _text_array(value) -> tuple:
    """TEXT[] 컬럼 -> tuple (NULL 배열, NULL 원소 제거)"""
    return tuple(v for v in (value or ()) if v)


class PostgresProfileProvider:
    """
    PostgreSQL 에서 사용자 학습 프로필 / 학습 선호 설정 / 활성 목표를 로드하는 ProfileProvider.

    - learning_profiles(user_id, learning_styles, attention_span, best_study_times, uses_visual_methods)
    - study_preferences(user_id, preferred_study_times, max_session_length, break_frequency, ..., timezone)
    - study_goals(user_id, title, is_active, created_at)

    행이 없으면 신규 사용자로 보고 기본값을 돌려준다.
    psycopg2 는 동기 드라이버이므로 쿼리는 asyncio.to_thread 로 실행한다.
    """

    def __init__(self, conn=None):
        self._conn = conn or psycopg2.connect(
            host=PG_HOST,
            port=PG_PORT,
            dbname=PG_DBNAME,
            user=PG_USER,
            password=PG_PASSWORD,
            cursor_factory=RealDictCursor,
        )
        # 조회 전용 연결, 쿼리마다 트랜잭션을 닫는다
        self._conn.autocommit = True

    def _fetch_one(self, query: str, params: Sequence[Any]) -> Optional[Dict[str, Any]]:
        with self._conn.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchone()

    def _fetch_all(self, query: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        with self._conn.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    async def get_learning_profile(self, user_id: str) -> LearningProfile:
        query = """
        SELECT learning_styles, attention_span, best_study_times, uses_visual_methods
        FROM learning_profiles
        WHERE user_id = %s
        """
        row = await asyncio.to_thread(self._fetch_one, query, (user_id,))
        if not row:
            return LearningProfile()

        return LearningProfile(
            learning_styles=_text_array(row.get("learning_styles")),
            attention_span=row.get("attention_span"),
            best_study_times=_text_array(row.get("best_study_times")),
            uses_visual_methods=bool(row.get("uses_visual_methods")),
        )

    async def get_study_preferences(self, user_id: str) -> StudyPreferences:
        query = """
        SELECT preferred_study_times, max_session_length, break_frequency,
               difficulty_preference, motivation_style, reminder_frequency, timezone
        FROM study_preferences
        WHERE user_id = %s
        """
        row = await asyncio.to_thread(self._fetch_one, query, (user_id,))
        if not row:
            return StudyPreferences()

        defaults = StudyPreferences()
        return StudyPreferences(
            preferred_study_times=_text_array(row.get("preferred_study_times")),
            max_session_length=row.get("max_session_length") or defaults.max_session_length,
            break_frequency=row.get("break_frequency") or defaults.break_frequency,
            difficulty_preference=row.get("difficulty_preference") or defaults.difficulty_preference,
            motivation_style=MotivationStyle(row.get("motivation_style") or defaults.motivation_style.value),
            reminder_frequency=row.get("reminder_frequency") or defaults.reminder_frequency,
            timezone=row.get("timezone") or defaults.timezone,
        )

    async def get_active_goals(self, user_id: str) -> List[str]:
        query = """
        SELECT title
        FROM study_goals
        WHERE user_id = %s AND is_active = TRUE
        ORDER BY created_at
        """
        rows = await asyncio.to_thread(self._fetch_all, query, (user_id,))
        return [row["title"] for row in rows if row.get("title")]

    def close(self):
        self._conn.close()
