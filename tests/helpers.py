"""Shared test doubles for clocks, flaky storage and async subscriptions."""

import asyncio
from typing import Any, Iterator, Mapping

# 2023-01-01T12:00:00Z
T0 = 1672574400000


class ManualTimer:
    """Controllable wall clock and sleep for deterministic ticker tests."""

    def __init__(self, now: int = T0):
        self.now = now
        self._sleepers: list[asyncio.Future] = []

    def clock(self) -> int:
        return self.now

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append(future)
        try:
            await future
        finally:
            if future in self._sleepers:
                self._sleepers.remove(future)

    @property
    def sleeper_count(self) -> int:
        return len(self._sleepers)

    async def advance(self, millis: int) -> None:
        """Move the clock forward and wake every pending sleep."""
        self.now += millis
        sleepers, self._sleepers = self._sleepers, []
        for future in sleepers:
            if not future.done():
                future.set_result(None)
        await settle()


class FlakyRecord(Mapping[str, Any]):
    """Raw record whose listed fields raise when read."""

    def __init__(self, data: dict[str, Any], failures: dict[str, BaseException]):
        self._data = data
        self._failures = failures

    def __getitem__(self, key: str) -> Any:
        if key in self._failures:
            raise self._failures[key]
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def next_value(subscription, timeout: float = 1.0):
    """Next value from a subscription, failing the test instead of hanging."""
    return await asyncio.wait_for(subscription.__anext__(), timeout=timeout)


def drain(subscription) -> list:
    """Values already queued on a subscription, without waiting."""
    values = []
    while not subscription._queue.empty():
        values.append(subscription._queue.get_nowait())
    return values
