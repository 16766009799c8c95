from .memory_store import InMemoryRecommendationStore
from .providers import (
    ActivityProvider,
    MongoActivityProvider,
    MongoPerformanceProvider,
    PerformanceProvider,
    ProfileProvider,
)
from .store import MongoRecommendationStore, RecommendationStore

__all__ = [
    "ActivityProvider",
    "PerformanceProvider",
    "ProfileProvider",
    "MongoActivityProvider",
    "MongoPerformanceProvider",
    "RecommendationStore",
    "MongoRecommendationStore",
    "InMemoryRecommendationStore",
]
