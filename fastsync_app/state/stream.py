"""
Multi-subscriber observable values.

A ``Broadcast`` remembers the latest published value and fans every new value
out to each subscriber through its own FIFO queue, so one subscriber never
sees values reordered and a slow subscriber never blocks the publisher.

Subscriptions are held weakly: one the consumer drops, for instance by
breaking out of ``async for``, unregisters itself instead of queueing values
forever.
"""

import asyncio
import weakref
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

import structlog

from ..models.session import FastingSession

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _Failure:
    error: BaseException


class _Closed:
    pass


_CLOSED = _Closed()


class Subscription(Generic[T]):
    """
    Async iterator over the values published to a ``Broadcast``.

    Registration happens when the subscription is created, so nothing
    published afterwards is missed. Iteration raises the error passed to
    ``Broadcast.fail`` and stops after ``close()``.
    """

    def __init__(self, broadcast: "Broadcast[T]"):
        self._broadcast = broadcast
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _Closed):
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self.close()
            raise item.error
        return item

    def _push(self, item) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    def close(self) -> None:
        """Stop receiving values; a pending ``__anext__`` finishes iteration."""
        if self._closed:
            return
        self._broadcast._unsubscribe(self)
        self._queue.put_nowait(_CLOSED)
        self._closed = True

    async def aclose(self) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class Broadcast(Generic[T]):
    """Latest-value holder with ordered fan-out to any number of subscribers."""

    _UNSET = object()

    def __init__(self, name: str, initial=_UNSET):
        self.name = name
        self._latest = initial
        self._subscribers: list[weakref.ref] = []

    @property
    def has_value(self) -> bool:
        return self._latest is not Broadcast._UNSET

    @property
    def value(self) -> Optional[T]:
        """Latest published value, or None before the first publish."""
        return None if self._latest is Broadcast._UNSET else self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._live())

    def subscribe(self) -> Subscription[T]:
        """New subscription; receives the current value first when one exists."""
        subscription: Subscription[T] = Subscription(self)
        if self.has_value:
            subscription._push(self._latest)
        self._subscribers.append(weakref.ref(subscription, self._forget))
        return subscription

    def publish(self, value: T) -> None:
        self._latest = value
        for subscription in self._live():
            subscription._push(value)

    def fail(self, error: BaseException) -> None:
        """Deliver an error to every current subscriber, ending their iteration."""
        logger.error(
            "Broadcast failure delivered to subscribers",
            broadcast=self.name,
            subscribers=self.subscriber_count,
            error=repr(error)
        )
        for subscription in self._live():
            subscription._push(_Failure(error))

    def close(self) -> None:
        """Finish every subscription."""
        for subscription in self._live():
            subscription.close()

    def _live(self) -> list[Subscription[T]]:
        live = (ref() for ref in self._subscribers)
        return [subscription for subscription in live if subscription is not None]

    def _unsubscribe(self, subscription: Subscription[T]) -> None:
        self._subscribers = [ref for ref in self._subscribers if ref() is not subscription]

    def _forget(self, ref: weakref.ref) -> None:
        if ref in self._subscribers:
            self._subscribers.remove(ref)


class FastingStateStream(Broadcast[FastingSession]):
    """Observable view over the fasting store shared by every local consumer."""

    def __init__(self):
        super().__init__("fasting_state")

    def publish(self, value: FastingSession) -> None:
        logger.debug(
            "Publishing fasting session",
            is_fasting=value.is_fasting,
            start_time_millis=value.start_time_millis,
            fasting_goal_id=value.fasting_goal_id,
            subscribers=self.subscriber_count
        )
        super().publish(value)
