"""Tests for the elapsed-time ticker."""

import asyncio
import gc

import pytest

from fastsync_app.models.session import UNSET_START_TIME, FastingSession
from fastsync_app.state.stream import Broadcast
from fastsync_app.state.ticker import ElapsedTimeTicker, TickerState, compute_elapsed

from tests.helpers import T0, ManualTimer, drain, next_value, settle


def _fasting(start: int) -> FastingSession:
    return FastingSession(True, start, "16:8", T0)


def _idle() -> FastingSession:
    return FastingSession(False, UNSET_START_TIME, "16:8", T0)


@pytest.fixture
def ticker(timer: ManualTimer) -> ElapsedTimeTicker:
    return ElapsedTimeTicker(clock=timer.clock, sleep=timer.sleep)


@pytest.fixture
def sessions() -> Broadcast:
    return Broadcast("sessions")


class TestComputeElapsed:
    """Test the elapsed-time arithmetic."""

    def test_positive(self):
        assert compute_elapsed(T0, T0 + 2500) == 2500

    def test_start_in_future_clamps_to_zero(self):
        assert compute_elapsed(T0 + 60_000, T0) == 0


class TestTickerStateMachine:
    """Idle/Ticking transitions."""

    @pytest.mark.asyncio
    async def test_ticks_then_resets_on_stop(self, ticker, sessions, timer):
        ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()

        sessions.publish(_fasting(T0))
        await settle()
        await timer.advance(1000)
        await timer.advance(1000)
        assert ticker.state is TickerState.TICKING

        sessions.publish(_idle())
        await settle()

        assert drain(elapsed) == [0, 0, 1000, 2000, 0]
        assert ticker.state is TickerState.IDLE
        assert timer.sleeper_count == 0

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_idle_emits_single_zero(self, ticker, sessions):
        elapsed = ticker.elapsed()
        ticker.start(sessions.subscribe())

        sessions.publish(_idle())
        sessions.publish(_idle())
        await settle()

        assert drain(elapsed) == [0]
        assert ticker.current_elapsed_millis == 0

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_rebases_when_start_time_is_edited(self, ticker, sessions, timer):
        ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()

        sessions.publish(_fasting(T0))
        await settle()
        await timer.advance(3000)
        assert drain(elapsed) == [0, 0, 3000]

        sessions.publish(_fasting(T0 - 3_600_000))
        await settle()
        assert drain(elapsed) == [3_603_000]

        await timer.advance(1000)
        assert drain(elapsed) == [3_604_000]
        assert timer.sleeper_count == 1

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_start_in_future_reports_zero(self, ticker, sessions, timer):
        ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()

        sessions.publish(_fasting(T0 + 5000))
        await settle()
        await timer.advance(1000)

        assert drain(elapsed) == [0, 0, 0]
        assert ticker.state is TickerState.TICKING

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_fasting_without_start_stays_idle(self, ticker, sessions):
        ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()

        sessions.publish(FastingSession(True, UNSET_START_TIME, "16:8", T0))
        await settle()

        assert ticker.state is TickerState.IDLE
        assert drain(elapsed) == [0]

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_resume_after_idle_has_no_drift(self, ticker, sessions, timer):
        ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()

        sessions.publish(_fasting(T0))
        await settle()
        sessions.publish(_idle())
        await settle()
        await timer.advance(10_000)
        sessions.publish(_fasting(T0))
        await settle()

        assert drain(elapsed)[-1] == 10_000

        await ticker.stop()


class TestTickerLifecycle:
    """Start, stop and upstream failure."""

    @pytest.mark.asyncio
    async def test_abandoned_elapsed_iteration_is_released(self, ticker, sessions, timer):
        ticker.start(sessions.subscribe())
        sessions.publish(_fasting(T0))
        await settle()

        async for value in ticker.elapsed():
            break
        gc.collect()
        for _ in range(20):
            await timer.advance(1000)

        assert ticker._output.subscriber_count == 0
        assert ticker.current_elapsed_millis == 20_000

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_loop_and_emits_zero(self, ticker, sessions, timer):
        ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()
        sessions.publish(_fasting(T0 - 1000))
        await settle()

        await ticker.stop()

        assert drain(elapsed) == [0, 1000, 0]
        assert ticker.is_running is False
        assert timer.sleeper_count == 0
        assert sessions.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, ticker, sessions):
        ticker.start(sessions.subscribe())

        with pytest.raises(RuntimeError):
            ticker.start(sessions.subscribe())

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_upstream_failure_reaches_elapsed_subscribers(self, ticker, sessions, timer):
        task = ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()
        sessions.publish(_fasting(T0 - 1000))
        await settle()

        sessions.fail(RuntimeError("store defect"))
        with pytest.raises(RuntimeError, match="store defect"):
            await asyncio.wait_for(task, timeout=1.0)

        assert await next_value(elapsed) == 0
        assert await next_value(elapsed) == 1000
        assert await next_value(elapsed) == 0
        with pytest.raises(RuntimeError, match="store defect"):
            await next_value(elapsed)
        assert timer.sleeper_count == 0
        assert ticker.state is TickerState.IDLE

    @pytest.mark.asyncio
    async def test_follows_store_stream(self, ticker, store, timer):
        ticker.start(store.read())
        elapsed = ticker.elapsed()
        loaded = store.stream.subscribe()
        assert (await next_value(loaded)).is_fasting is False
        assert await next_value(elapsed) == 0

        await store.start_fasting(T0 - 60_000)
        assert await next_value(elapsed) == 60_000

        await store.stop_fasting()
        assert await next_value(elapsed) == 0

        await ticker.stop()


class TestTickFailure:
    """A tick loop that dies must not take the ticker down with it."""

    def _ticker(self, timer: ManualTimer, broken: dict) -> ElapsedTimeTicker:
        def clock() -> int:
            if broken["clock"]:
                raise OSError("clock unavailable")
            return timer.now
        return ElapsedTimeTicker(clock=clock, sleep=timer.sleep)

    @pytest.mark.asyncio
    async def test_next_session_restarts_after_failed_tick(self, sessions, timer):
        broken = {"clock": True}
        ticker = self._ticker(timer, broken)
        task = ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()

        sessions.publish(_fasting(T0 - 1000))
        await settle()
        broken["clock"] = False
        sessions.publish(_fasting(T0 - 2000))
        await settle()

        assert not task.done()
        assert drain(elapsed) == [0, 2000]

        sessions.publish(_idle())
        await settle()
        assert drain(elapsed) == [0]
        assert ticker.is_running

        await ticker.stop()

    @pytest.mark.asyncio
    async def test_stop_after_failed_tick(self, sessions, timer):
        ticker = self._ticker(timer, {"clock": True})
        ticker.start(sessions.subscribe())
        elapsed = ticker.elapsed()

        sessions.publish(_fasting(T0 - 1000))
        await settle()

        await ticker.stop()

        assert ticker.is_running is False
        assert ticker.state is TickerState.IDLE
        assert ticker.current_elapsed_millis == 0
        assert timer.sleeper_count == 0
