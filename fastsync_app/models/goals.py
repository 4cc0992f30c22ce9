"""
Predefined fasting goal catalog.

Goals are static reference data looked up by a stable id. Lookups never fail:
unknown ids resolve to the 16:8 default.
"""

from dataclasses import dataclass
from typing import Optional

from ..utils.time import MILLIS_PER_HOUR

DEFAULT_GOAL_ID = "16:8"


@dataclass(frozen=True)
class FastingGoal:
    """Named target fasting duration."""
    id: str
    duration_millis: int
    display_label: str

    @property
    def duration_hours(self) -> int:
        return self.duration_millis // MILLIS_PER_HOUR


class PredefinedFastingGoals:
    """Fixed catalog of selectable goals."""

    CIRCADIAN = FastingGoal("13:11", 13 * MILLIS_PER_HOUR, "Circadian Rhythm TRF")
    SIXTEEN_EIGHT = FastingGoal("16:8", 16 * MILLIS_PER_HOUR, "16:8 Intermittent")
    EIGHTEEN_SIX = FastingGoal("18:6", 18 * MILLIS_PER_HOUR, "18:6 Intermittent")
    TWENTY_FOUR_WINDOW = FastingGoal("20:4", 20 * MILLIS_PER_HOUR, "20:4 Warrior")
    TWENTY_FOUR = FastingGoal("24h", 24 * MILLIS_PER_HOUR, "24 Hour Fast")
    THIRTY_SIX = FastingGoal("36h", 36 * MILLIS_PER_HOUR, "36 Hour Monk Fast")

    ALL_GOALS = (
        CIRCADIAN,
        SIXTEEN_EIGHT,
        EIGHTEEN_SIX,
        TWENTY_FOUR_WINDOW,
        TWENTY_FOUR,
        THIRTY_SIX,
    )

    @classmethod
    def get_goal_by_id(cls, goal_id: Optional[str]) -> FastingGoal:
        """Resolve a goal id, falling back to 16:8 for unknown or empty ids."""
        for goal in cls.ALL_GOALS:
            if goal.id == goal_id:
                return goal
        return cls.SIXTEEN_EIGHT

    @classmethod
    def is_known(cls, goal_id: Optional[str]) -> bool:
        return any(goal.id == goal_id for goal in cls.ALL_GOALS)


def get_goal_by_id(goal_id: Optional[str]) -> FastingGoal:
    """Module-level convenience for ``PredefinedFastingGoals.get_goal_by_id``."""
    return PredefinedFastingGoals.get_goal_by_id(goal_id)
