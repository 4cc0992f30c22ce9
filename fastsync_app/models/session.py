"""
Fasting session data model.

The session is a singleton record: there is always exactly one per device and
"no fast" is represented by ``is_fasting=False`` with the unset start time,
never by the record being absent.
"""

from dataclasses import dataclass, replace
from typing import Any

from .goals import DEFAULT_GOAL_ID

UNSET_START_TIME = -1


@dataclass(frozen=True)
class FastingSession:
    """Immutable snapshot of the fasting record."""

    is_fasting: bool = False
    start_time_millis: int = UNSET_START_TIME    # Meaningful only while fasting
    fasting_goal_id: str = DEFAULT_GOAL_ID       # Pending choice when idle
    last_updated_millis: int = 0                 # Per-device, never decreases

    @property
    def has_valid_start(self) -> bool:
        """True when the start time is set (guards isFasting/startTime races)."""
        return self.start_time_millis > 0

    @property
    def is_active(self) -> bool:
        """True when a fast is open and has a usable start time."""
        return self.is_fasting and self.has_valid_start

    def with_started(self, start_time_millis: int, now_millis: int) -> 'FastingSession':
        """Open a fast at the given start time, keeping the goal."""
        return replace(
            self,
            is_fasting=True,
            start_time_millis=start_time_millis,
            last_updated_millis=self._next_update(now_millis),
        )

    def with_stopped(self, goal_id: str, now_millis: int) -> 'FastingSession':
        """Close the fast, reset the start time and record the goal for next time."""
        return replace(
            self,
            is_fasting=False,
            start_time_millis=UNSET_START_TIME,
            fasting_goal_id=goal_id,
            last_updated_millis=self._next_update(now_millis),
        )

    def with_start_time(self, start_time_millis: int, now_millis: int) -> 'FastingSession':
        """Rewrite the start time without touching the fasting flag."""
        return replace(
            self,
            start_time_millis=start_time_millis,
            last_updated_millis=self._next_update(now_millis),
        )

    def with_goal(self, goal_id: str, now_millis: int) -> 'FastingSession':
        """Change the goal id only."""
        return replace(
            self,
            fasting_goal_id=goal_id,
            last_updated_millis=self._next_update(now_millis),
        )

    def _next_update(self, now_millis: int) -> int:
        return max(now_millis, self.last_updated_millis)

    def to_record(self) -> dict[str, Any]:
        """Flatten to the persisted column layout."""
        return {
            "is_fasting": self.is_fasting,
            "start_time_millis": self.start_time_millis,
            "fasting_goal_id": self.fasting_goal_id,
            "last_updated_millis": self.last_updated_millis,
        }
