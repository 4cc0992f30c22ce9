"""
Elapsed-time ticker.

Turns the stream of fasting sessions into a live elapsed-duration value.
Every upstream session cancels the running loop before deciding what to do,
so at most one loop ticks per ticker and an edited start time is picked up
immediately instead of continuing a stale count.
"""

import asyncio
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..logging.config import get_state_logger
from ..models.session import FastingSession
from ..utils.time import MILLIS_PER_SECOND, now_millis
from .stream import Broadcast, Subscription

DEFAULT_TICK_INTERVAL_MS = 1000


class TickerState(str, Enum):
    """Ticker states."""
    IDLE = "idle"
    TICKING = "ticking"


def compute_elapsed(start_time_millis: int, now: int) -> int:
    """Elapsed milliseconds since start, never negative (clock skew, future edits)."""
    return max(0, now - start_time_millis)


class ElapsedTimeTicker:
    """
    Idle/Ticking state machine over (is_fasting, start_time_millis).

    Idle emits 0. Ticking emits ``now - start`` right away and then once per
    interval, always recomputed from the stored start time so resuming after
    Idle carries no drift.
    """

    def __init__(
        self,
        clock: Callable[[], int] = now_millis,
        interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self.interval_ms = interval_ms
        self.state = TickerState.IDLE
        self._output: Broadcast[int] = Broadcast("elapsed_time", initial=0)
        self._tick_task: Optional[asyncio.Task] = None
        self._run_task: Optional[asyncio.Task] = None
        self._start_time_millis: Optional[int] = None
        self.logger = get_state_logger(__name__).bind(component="ticker")

    @property
    def current_elapsed_millis(self) -> int:
        return self._output.value or 0

    @property
    def is_running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    def elapsed(self) -> Subscription[int]:
        """Subscribe to elapsed milliseconds; the current value comes first."""
        return self._output.subscribe()

    def start(self, source: AsyncIterator[FastingSession]) -> asyncio.Task:
        """Consume ``source`` in a background task (typically ``store.read()``)."""
        if self.is_running:
            raise RuntimeError("Ticker is already running")
        self._run_task = asyncio.get_running_loop().create_task(self.run(source))
        return self._run_task

    async def stop(self) -> None:
        """Cancel the consumer task and any running tick loop, then go Idle."""
        if self._run_task is not None:
            self._run_task.cancel()
            try:
                await self._run_task
            except asyncio.CancelledError:
                pass
            except Exception:
                # Already delivered to elapsed() subscribers by run()
                pass
            self._run_task = None
        await self._cancel_tick()
        self._enter_idle("stopped")

    async def run(self, source: AsyncIterator[FastingSession]) -> None:
        """Drive the state machine until ``source`` ends or fails."""
        try:
            async for session in source:
                await self.on_session(session)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._cancel_tick()
            self._enter_idle("upstream_failure")
            self.logger.error("Ticker input stream failed", error=repr(e))
            self._output.fail(e)
            raise
        finally:
            await self._cancel_tick()
            close = getattr(source, "close", None)
            if callable(close):
                close()

    async def on_session(self, session: FastingSession) -> None:
        """Apply one upstream value: cancel the old loop, then tick or idle."""
        await self._cancel_tick()

        if session.is_active:
            if self.state is not TickerState.TICKING or \
                    self._start_time_millis != session.start_time_millis:
                self.logger.info(
                    "Ticker rebased" if self.state is TickerState.TICKING else "Ticker started",
                    start_time_millis=session.start_time_millis
                )
            self.state = TickerState.TICKING
            self._start_time_millis = session.start_time_millis
            self._tick_task = asyncio.get_running_loop().create_task(
                self._tick_loop(session.start_time_millis)
            )
        else:
            if session.is_fasting:
                self.logger.warning(
                    "Fasting flag set without a valid start time, staying idle",
                    start_time_millis=session.start_time_millis
                )
            self._enter_idle("not_fasting")

    async def _tick_loop(self, start_time_millis: int) -> None:
        interval_seconds = self.interval_ms / MILLIS_PER_SECOND
        try:
            while True:
                self._output.publish(compute_elapsed(start_time_millis, self._clock()))
                await self._sleep(interval_seconds)
        except Exception as e:
            self.logger.error(
                "Tick loop failed, waiting for the next session",
                start_time_millis=start_time_millis,
                error=repr(e)
            )
            raise

    async def _cancel_tick(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            # Already logged by _tick_loop
            pass

    def _enter_idle(self, reason: str) -> None:
        was_ticking = self.state is TickerState.TICKING
        self.state = TickerState.IDLE
        self._start_time_millis = None
        if was_ticking:
            self.logger.info("Ticker idle", reason=reason)
        if was_ticking or self._output.value != 0:
            self._output.publish(0)
