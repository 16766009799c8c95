import asyncio
import random

from .data.memory_store import InMemoryRecommendationStore
from .data.mock_data import MockActivityProvider, MockPerformanceProvider, MockProfileProvider
from .rule_based.generators import DEFAULT_GENERATORS, MotivationRule
from .service.engine import RecommendationEngine


def build_demo_engine(seed: int = 7) -> RecommendationEngine:
    return RecommendationEngine(
        performance_provider=MockPerformanceProvider(),
        profile_provider=MockProfileProvider(),
        activity_provider=MockActivityProvider(),
        store=InMemoryRecommendationStore(),
        generators=[*DEFAULT_GENERATORS, MotivationRule(random.Random(seed))],
    )


async def demo_user_recommendation(user_id: str = "demo-user"):
    engine = build_demo_engine()

    print(f"=== User {user_id} Recommendations ===")
    recs = await engine.generate(user_id)
    for r in recs:
        print(f"[{r.priority.value:>8}] {r.title} (impact={r.estimated_impact.value}, confidence={r.metadata.confidence})")

    if recs:
        top = recs[0]
        await engine.update_action_item(top.id, top.action_items[0].id, True)
        await engine.apply_recommendation(top.id)

    active = await engine.get_active_recommendations(user_id)
    summary = await engine.get_summary(user_id)
    print(f"active={len(active)} applied={summary.applied_count} total={summary.total_recommendations}")


if __name__ == "__main__":
    asyncio.run(demo_user_recommendation())
