from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import numpy as np

from ..models.data_models import ProductivityTrend, StudyAnalytics, StudyPattern, StudySession

logger = logging.getLogger(__name__)

PEAK_HOUR_COUNT = 2
CONSISTENCY_WINDOW_DAYS = 30
TREND_MIN_SESSIONS = 6
TREND_THRESHOLD = 0.1


def resolve_timezone(name: Optional[str]) -> tzinfo:
    # IANA 이름 (예: "Asia/Seoul"). 없거나 모르는 이름이면 UTC
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"[Patterns] unknown timezone {name!r}, falling back to UTC")
        return timezone.utc


def to_local(dt: datetime, tz: Optional[tzinfo]) -> datetime:
    # 세션 시각은 UTC 로 저장되므로 hour / date 는 사용자 시간대로 바꾼 뒤 읽는다
    if tz is None:
        return dt
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


# Peak Hours

def identify_peak_hours(
    sessions: Sequence[StudySession],
    top_n: int = PEAK_HOUR_COUNT,
    tz: Optional[tzinfo] = None,
) -> List[int]:
    """
    세션 시작 시각(hour, 사용자 시간대 기준) 빈도 상위 top_n 개.
    동률이면 이른 시간이 먼저 온다 (stable argsort).
    """
    if not sessions:
        return []

    hours = np.asarray([to_local(s.start_time, tz).hour for s in sessions], dtype=int)
    counts = np.bincount(hours, minlength=24)
    order = np.argsort(-counts, kind="stable")
    return [int(h) for h in order[:top_n] if counts[h] > 0]


def parse_time_window(window: object) -> Optional[Tuple[time, time]]:
    # "09:00-11:00" 형식. 문자열이 아니거나 형식이 맞지 않으면 None
    if not isinstance(window, str):
        return None
    try:
        start_s, end_s = window.split("-", 1)
        start = datetime.strptime(start_s.strip(), "%H:%M").time()
        end = datetime.strptime(end_s.strip(), "%H:%M").time()
    except ValueError:
        return None
    return start, end


def hour_in_window(hour: int, window: Tuple[time, time]) -> bool:
    start, end = window
    t = time(hour=hour)
    if start <= end:
        return start <= t < end
    # 자정을 넘기는 구간 (예: 22:00-01:00)
    return t >= start or t < end


def is_studying_during_peak_hours(peak_hours: Sequence[int], study_windows: Sequence[str]) -> Optional[bool]:
    """
    peak hour 중 하나라도 사용자가 설정한 학습 시간대 안에 있으면 True.
    판단할 데이터가 없으면 None.
    """
    windows = [w for w in (parse_time_window(s) for s in study_windows) if w is not None]
    if not peak_hours or not windows:
        return None
    return any(hour_in_window(h, w) for h in peak_hours for w in windows)


# Streak

def _study_days(sessions: Sequence[StudySession], tz: Optional[tzinfo] = None) -> List[date]:
    return sorted({to_local(s.start_time, tz).date() for s in sessions})


def compute_current_streak(sessions: Sequence[StudySession], today: date, tz: Optional[tzinfo] = None) -> int:
    # today 는 사용자 시간대 기준 날짜
    days = set(_study_days(sessions, tz))
    # 오늘 아직 공부 안 했으면 어제부터 센다
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def compute_longest_streak(sessions: Sequence[StudySession], tz: Optional[tzinfo] = None) -> int:
    days = _study_days(sessions, tz)
    if not days:
        return 0
    ordinals = np.asarray([d.toordinal() for d in days])
    longest = current = 1
    for gap in np.diff(ordinals):
        current = current + 1 if gap == 1 else 1
        longest = max(longest, current)
    return int(longest)


def build_study_analytics(
    sessions: Sequence[StudySession],
    today: date,
    tz: Optional[tzinfo] = None,
) -> StudyAnalytics:
    if not sessions:
        return StudyAnalytics()
    durations = np.asarray([s.duration_minutes for s in sessions], dtype=float)
    return StudyAnalytics(
        total_study_time=float(durations.sum()),
        average_session_length=float(round(durations.mean(), 1)),
        streak_days=compute_current_streak(sessions, today, tz),
        longest_streak=compute_longest_streak(sessions, tz),
    )


# Consistency / Trend

def compute_study_intervals(sessions: Sequence[StudySession]) -> List[int]:
    if len(sessions) < 2:
        return []
    starts = sorted(s.start_time for s in sessions)
    return [(b - a).days for a, b in zip(starts, starts[1:])]


def compute_consistency_score(
    sessions: Sequence[StudySession],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> int:
    window_start = now - timedelta(days=CONSISTENCY_WINDOW_DAYS)
    recent = [s for s in sessions if s.start_time >= window_start]
    if not recent:
        return 0

    study_days = len(_study_days(recent, tz))
    score = study_days / CONSISTENCY_WINDOW_DAYS * 100

    intervals = compute_study_intervals(recent)
    if intervals:
        avg_interval = float(np.mean(intervals))
        # 이상적인 간격은 1일
        interval_consistency = max(0.0, 1.0 - abs(avg_interval - 1.0))
        score *= 0.7 + 0.3 * interval_consistency

    return int(min(100, round(score)))


def compute_productivity_trend(sessions: Sequence[StudySession]) -> ProductivityTrend:
    if len(sessions) < TREND_MIN_SESSIONS:
        return ProductivityTrend.STABLE

    ordered = sorted(sessions, key=lambda s: s.start_time)
    mid = len(ordered) // 2
    first = np.mean([s.xp_earned for s in ordered[:mid]])
    second = np.mean([s.xp_earned for s in ordered[mid:]])
    if first <= 0:
        return ProductivityTrend.STABLE

    improvement = (second - first) / first
    if improvement > TREND_THRESHOLD:
        return ProductivityTrend.IMPROVING
    if improvement < -TREND_THRESHOLD:
        return ProductivityTrend.DECLINING
    return ProductivityTrend.STABLE


def analyze_study_patterns(
    sessions: Sequence[StudySession],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> StudyPattern:
    if not sessions:
        return StudyPattern(
            peak_hours=(),
            average_session_length=0.0,
            preferred_break_length=15,
            consistency_score=0,
            productivity_trend=ProductivityTrend.STABLE,
        )

    avg_len = float(np.mean([s.duration_minutes for s in sessions]))
    return StudyPattern(
        peak_hours=tuple(identify_peak_hours(sessions, tz=tz)),
        average_session_length=avg_len,
        preferred_break_length=max(5, min(30, round(avg_len * 0.2))),
        consistency_score=compute_consistency_score(sessions, now, tz),
        productivity_trend=compute_productivity_trend(sessions),
    )
