from .generators import (
    ALGORITHM_VERSION,
    DEFAULT_GENERATORS,
    MotivationRule,
    generate_goal_recommendations,
    generate_habit_recommendations,
    generate_performance_recommendations,
    generate_schedule_recommendations,
    generate_study_method_recommendations,
)
from .prioritizer import prioritize

__all__ = [
    "ALGORITHM_VERSION",
    "DEFAULT_GENERATORS",
    "MotivationRule",
    "generate_performance_recommendations",
    "generate_schedule_recommendations",
    "generate_study_method_recommendations",
    "generate_habit_recommendations",
    "generate_goal_recommendations",
    "prioritize",
]
