"""
Fasting-state store.

The store owns the single durable fasting record on a device. Local user
actions and updates received from the paired device go through separate entry
points: only local mutations notify the sync listeners, which keeps the two
devices from echoing updates back and forth.
"""

import asyncio
import sqlite3
from typing import Any, Callable, Mapping, Optional

from ..errors import StateContractError, TransientReadError
from ..logging.config import get_state_logger, log_session_change
from ..models.goals import DEFAULT_GOAL_ID
from ..models.session import FastingSession
from ..persistence.session_store import SessionStore
from ..utils.time import now_millis
from .stream import FastingStateStream, Subscription

TRANSIENT_READ_ERRORS = (OSError, sqlite3.OperationalError, TransientReadError)

LocalMutationListener = Callable[[FastingSession], None]
SessionMutation = Callable[[FastingSession, int], FastingSession]


def _coerce_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    raise ValueError(f"not a boolean flag: {raw!r}")


def _coerce_int(raw: Any) -> int:
    if isinstance(raw, bool):
        raise TypeError(f"boolean where integer expected: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        return int(raw)
    raise TypeError(f"not an integer: {raw!r}")


def _coerce_goal_id(raw: Any) -> str:
    if not isinstance(raw, str) or not raw:
        raise ValueError(f"not a goal id: {raw!r}")
    return raw


class FastingStateStore:
    """
    Single source of truth for the fasting session on one device.

    Reads are resilient: a field that cannot be read because of a transient
    or I/O-class failure, or that holds an undecodable value, falls back to
    its default and the stream keeps going. Any other failure propagates to
    subscribers and to ``snapshot()`` callers so defects stay visible.
    """

    def __init__(
        self,
        backend: SessionStore,
        clock: Callable[[], int] = now_millis,
        stream: Optional[FastingStateStream] = None,
        default_goal_id: str = DEFAULT_GOAL_ID,
    ):
        self._backend = backend
        self._clock = clock
        self._defaults = FastingSession(fasting_goal_id=default_goal_id)
        self._stream = stream or FastingStateStream()
        self._write_lock = asyncio.Lock()
        self._listeners: list[LocalMutationListener] = []
        self._load_task: Optional[asyncio.Task] = None
        self.logger = get_state_logger(__name__)

    @property
    def stream(self) -> FastingStateStream:
        return self._stream

    @property
    def current(self) -> Optional[FastingSession]:
        """Last value published to local subscribers, None before first load."""
        return self._stream.value

    def add_local_mutation_listener(self, listener: LocalMutationListener) -> None:
        """Register a callback run after every successful local mutation."""
        self._listeners.append(listener)

    def remove_local_mutation_listener(self, listener: LocalMutationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # Reads

    def read(self) -> Subscription[FastingSession]:
        """
        Subscribe to the session.

        The current value is delivered first (loading it from storage if this
        is the first read), then every later mutation. Must be called from
        within a running event loop.
        """
        subscription = self._stream.subscribe()
        if not self._stream.has_value and self._load_task is None:
            self._load_task = asyncio.get_running_loop().create_task(self._initial_load())
        return subscription

    async def snapshot(self) -> FastingSession:
        """One-shot current value read from durable storage."""
        try:
            record = await asyncio.to_thread(self._backend.read_record)
        except TRANSIENT_READ_ERRORS as e:
            self.logger.warning(
                "Fasting record unreadable, using defaults",
                error=repr(e)
            )
            record = {}
        return self._decode(record)

    async def refresh(self) -> FastingSession:
        """Re-read storage and publish the result to every subscriber."""
        async with self._write_lock:
            try:
                session = await self.snapshot()
            except Exception as e:
                self._stream.fail(e)
                raise
            self._stream.publish(session)
        return session

    async def _initial_load(self) -> None:
        try:
            await self.refresh()
        except Exception:
            # Already delivered to subscribers by refresh()
            self.logger.exception("Initial fasting record load failed")
        finally:
            self._load_task = None

    # Local mutations

    async def start_fasting(self, start_time_millis: int) -> FastingSession:
        """Open a fast at ``start_time_millis``; the goal is unchanged."""
        self._require_timestamp("start_fasting", start_time_millis)
        return await self._apply_local(
            "start_fasting",
            lambda session, now: session.with_started(start_time_millis, now)
        )

    async def stop_fasting(self, goal_id_at_stop: Optional[str] = None) -> FastingSession:
        """
        Close the fast and reset the start time.

        Args:
            goal_id_at_stop: Goal to keep for the next fast. Defaults to the
                goal currently stored.
        """
        if goal_id_at_stop is not None:
            self._require_goal_id("stop_fasting", goal_id_at_stop)
        return await self._apply_local(
            "stop_fasting",
            lambda session, now: session.with_stopped(
                goal_id_at_stop if goal_id_at_stop is not None else session.fasting_goal_id,
                now
            )
        )

    async def update_schedule(self, new_start_time_millis: int) -> FastingSession:
        """Retroactively move the start of the fast; ``is_fasting`` is kept."""
        self._require_timestamp("update_schedule", new_start_time_millis)
        return await self._apply_local(
            "update_schedule",
            lambda session, now: session.with_start_time(new_start_time_millis, now)
        )

    async def update_goal(self, new_goal_id: str) -> FastingSession:
        self._require_goal_id("update_goal", new_goal_id)
        return await self._apply_local(
            "update_goal",
            lambda session, now: session.with_goal(new_goal_id, now)
        )

    # Remote-origin mutation

    async def update_from_remote(
        self,
        start_time_millis: int,
        goal_id: str,
        is_fasting: bool,
        updated_at_millis: int,
    ) -> FastingSession:
        """
        Apply a record received from the paired device.

        All four fields are written as received in one transaction. Local
        mutation listeners are not notified, so nothing is sent back.
        """
        incoming = FastingSession(
            is_fasting=is_fasting,
            start_time_millis=start_time_millis,
            fasting_goal_id=goal_id,
            last_updated_millis=updated_at_millis,
        )
        return await self._commit(
            "update_from_remote",
            lambda session, now: incoming,
            origin="remote"
        )

    # Internals

    async def _apply_local(self, operation: str, mutate: SessionMutation) -> FastingSession:
        return await self._commit(operation, mutate, origin="local")

    async def _commit(self, operation: str, mutate: SessionMutation, origin: str) -> FastingSession:
        """
        Write one mutation, then publish it (and hand local ones to listeners).

        The edit runs in a worker thread that commits even if the caller is
        cancelled meanwhile. A cancelled caller still waits for the edit to
        land and applies it before the cancellation propagates.
        """
        changes: dict[str, FastingSession] = {}

        def transform(record: Mapping[str, Any]) -> Mapping[str, Any]:
            before = self._decode(record)
            after = mutate(before, self._clock())
            changes["before"] = before
            changes["after"] = after
            return after.to_record()

        async with self._write_lock:
            edit = asyncio.ensure_future(asyncio.to_thread(self._backend.edit, transform))
            try:
                await asyncio.shield(edit)
            except asyncio.CancelledError:
                if edit.cancelled():
                    raise
                await asyncio.wait({edit})
                if edit.exception() is None:
                    self._finish(operation, changes["before"], changes["after"], origin)
                    self.logger.warning(
                        "Mutation caller cancelled after commit, change applied",
                        operation=operation
                    )
                raise

            self._finish(operation, changes["before"], changes["after"], origin)

        return changes["after"]

    def _finish(self, operation: str, before: FastingSession,
                after: FastingSession, origin: str) -> None:
        log_session_change(self.logger, operation, before, after, origin=origin)
        self._stream.publish(after)
        if origin != "local":
            return
        for listener in list(self._listeners):
            try:
                listener(after)
            except Exception as e:
                self.logger.error(
                    "Local mutation listener failed",
                    operation=operation,
                    listener=getattr(listener, "__qualname__", repr(listener)),
                    error=str(e)
                )

    def _decode(self, record: Mapping[str, Any]) -> FastingSession:
        return FastingSession(
            is_fasting=self._read_field(record, "is_fasting", _coerce_bool, self._defaults.is_fasting),
            start_time_millis=self._read_field(
                record, "start_time_millis", _coerce_int, self._defaults.start_time_millis
            ),
            fasting_goal_id=self._read_field(
                record, "fasting_goal_id", _coerce_goal_id, self._defaults.fasting_goal_id
            ),
            last_updated_millis=self._read_field(
                record, "last_updated_millis", _coerce_int, self._defaults.last_updated_millis
            ),
        )

    def _read_field(self, record: Mapping[str, Any], name: str,
                    coerce: Callable[[Any], Any], default: Any) -> Any:
        try:
            raw = record[name]
        except KeyError:
            return default
        except TRANSIENT_READ_ERRORS as e:
            self.logger.warning(
                "Transient failure reading field, using default",
                field=name,
                default=default,
                error=repr(e)
            )
            return default

        if raw is None:
            return default

        try:
            return coerce(raw)
        except (TypeError, ValueError) as e:
            self.logger.warning(
                "Undecodable field value, using default",
                field=name,
                default=default,
                error=str(e)
            )
            return default

    @staticmethod
    def _require_timestamp(operation: str, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise StateContractError(
                f"{operation} requires a positive epoch-millisecond start time, got {value!r}",
                operation=operation
            )

    @staticmethod
    def _require_goal_id(operation: str, value: Any) -> None:
        if not isinstance(value, str) or not value:
            raise StateContractError(
                f"{operation} requires a non-empty goal id, got {value!r}",
                operation=operation
            )
