"""
Shared fixtures for study recommendation tests.

Engines are always built from the in-memory store and mock providers,
so no test touches MongoDB or PostgreSQL.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from study_recommendation.data.memory_store import InMemoryRecommendationStore
from study_recommendation.data.mock_data import (
    MockActivityProvider,
    MockPerformanceProvider,
    MockProfileProvider,
    get_mock_performance,
    get_mock_preferences,
    get_mock_profile,
    get_mock_sessions,
)
from study_recommendation.models.data_models import (
    LearningProfile,
    RecommendationContext,
    StudyAnalytics,
    StudyPreferences,
    StudySession,
    SubjectPerformance,
)
from study_recommendation.service.engine import RecommendationEngine

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryRecommendationStore:
    return InMemoryRecommendationStore()


@pytest.fixture
def make_engine(clock, store):
    """
    Factory for engines with overridable provider data.
    Defaults reproduce the mock student: one critical subject, evening sessions, visual learner.
    """

    def _make(
        performance: Optional[Sequence[SubjectPerformance]] = None,
        sessions: Optional[Sequence[StudySession]] = None,
        analytics: Optional[StudyAnalytics] = None,
        profile: Optional[LearningProfile] = None,
        preferences: Optional[StudyPreferences] = None,
        goals: Optional[Sequence[str]] = None,
        generators=None,
        store_override=None,
    ) -> RecommendationEngine:
        return RecommendationEngine(
            performance_provider=MockPerformanceProvider(performance),
            profile_provider=MockProfileProvider(profile, preferences, goals),
            activity_provider=MockActivityProvider(sessions, analytics, now=clock.now),
            store=store if store_override is None else store_override,
            generators=generators,
            clock=clock,
        )

    return _make


@pytest.fixture
def engine(make_engine) -> RecommendationEngine:
    return make_engine()


@pytest.fixture
def make_context():
    """Factory for RecommendationContext with mock defaults."""

    def _make(**overrides) -> RecommendationContext:
        now = overrides.pop("now", NOW)
        sessions = tuple(overrides.pop("recent_sessions", get_mock_sessions(now)))
        values = dict(
            user_id="user-1",
            learning_profile=get_mock_profile(),
            performance=tuple(get_mock_performance()),
            analytics=StudyAnalytics(total_study_time=440, average_session_length=45, streak_days=2),
            recent_sessions=sessions,
            active_goals=("Complete Math Course", "Improve Physics Grade"),
            preferences=get_mock_preferences(),
            now=now,
        )
        values.update(overrides)
        return RecommendationContext(**values)

    return _make


@pytest.fixture
def client(engine):
    """TestClient whose engine dependency resolves to the in-memory engine."""
    from server import app
    from study_recommendation.interface.api_interface import get_engine

    app.dependency_overrides[get_engine] = lambda: engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
