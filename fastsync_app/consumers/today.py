"""
"Today" screen controller and widget/complication summary.

These sit outside the core: they mutate the store on user actions and then
refresh the widgets and reschedule notifications, which the store itself
never does.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import structlog

from ..models.goals import FastingGoal, get_goal_by_id
from ..models.session import FastingSession
from ..progress import calculate_progress_fraction, calculate_progress_percentage
from ..state.store import FastingStateStore
from ..utils.time import format_duration, get_hours, now_millis

logger = structlog.get_logger(__name__)


class NotificationScheduler(Protocol):
    """Local notification collaborator."""

    def schedule_notifications(self, start_time_millis: int, goal_id: str) -> None:
        ...

    def cancel_all_notifications(self) -> None:
        ...


class WidgetUpdater(Protocol):
    """Home-screen widget / watch complication refresher."""

    async def update_all(self) -> None:
        ...


@dataclass(frozen=True)
class FastingSummary:
    """Everything a widget or complication needs to render one frame."""
    is_fasting: bool
    elapsed_millis: int
    goal: FastingGoal
    progress_fraction: float
    progress_percentage: int
    hours_remaining: int
    is_goal_met: bool

    @property
    def elapsed_display(self) -> str:
        return format_duration(self.elapsed_millis)


def build_fasting_summary(session: FastingSession, now: int) -> FastingSummary:
    """Derive the render summary for ``session`` at wall-clock ``now``."""
    goal = get_goal_by_id(session.fasting_goal_id)
    elapsed = max(0, now - session.start_time_millis) if session.is_active else 0
    hours_left = get_hours(goal.duration_millis) - get_hours(elapsed)

    return FastingSummary(
        is_fasting=session.is_fasting,
        elapsed_millis=elapsed,
        goal=goal,
        progress_fraction=calculate_progress_fraction(elapsed, goal.duration_millis),
        progress_percentage=calculate_progress_percentage(elapsed, goal.duration_millis),
        hours_remaining=max(0, hours_left),
        is_goal_met=session.is_active and hours_left <= 0,
    )


class TodayController:
    """User-action entry points of the phone and wearable "today" screens."""

    def __init__(
        self,
        store: FastingStateStore,
        notification_scheduler: NotificationScheduler,
        widget_updater: Optional[WidgetUpdater] = None,
        clock: Callable[[], int] = now_millis,
    ):
        self.store = store
        self.notification_scheduler = notification_scheduler
        self.widget_updater = widget_updater
        self._clock = clock

    async def on_start_fasting(self) -> FastingSession:
        start_time_millis = self._clock()
        session = await self.store.start_fasting(start_time_millis)
        await self._update_widgets()
        self.notification_scheduler.schedule_notifications(
            start_time_millis, session.fasting_goal_id
        )
        return session

    async def on_stop_fasting(self) -> FastingSession:
        session = await self.store.stop_fasting()
        await self._update_widgets()
        self.notification_scheduler.cancel_all_notifications()
        return session

    async def update_start_time(self, time_in_millis: int) -> FastingSession:
        session = await self.store.update_schedule(time_in_millis)
        await self._update_widgets()
        if session.is_fasting:
            self.notification_scheduler.schedule_notifications(
                time_in_millis, session.fasting_goal_id
            )
        return session

    async def update_fasting_goal(self, fasting_goal_id: str) -> FastingSession:
        session = await self.store.update_goal(fasting_goal_id)
        await self._update_widgets()
        if session.is_active:
            self.notification_scheduler.schedule_notifications(
                session.start_time_millis, fasting_goal_id
            )
        return session

    async def summary(self) -> FastingSummary:
        """Refresh-on-demand summary read straight from storage."""
        return build_fasting_summary(await self.store.snapshot(), self._clock())

    async def _update_widgets(self) -> None:
        if self.widget_updater is None:
            return
        try:
            await self.widget_updater.update_all()
        except Exception as e:
            logger.warning("Widget refresh failed", error=str(e))
