"""
Cross-device propagation of the fasting session.

Local mutations are pushed to the paired device in the background; inbound
messages are applied through the store's remote entry point, which never
propagates, so an update cannot bounce between the devices.

Known limitation: inbound records are applied in arrival order without
comparing ``last_updated_millis``. That is only safe with a single peer and
immediate push delivery; queued delivery or more peers would need a
timestamp comparison that rejects older records.
"""

import asyncio
from typing import Any

from ..errors import MalformedSyncMessageError
from ..logging.config import get_sync_logger
from ..models.session import FastingSession
from ..state.store import FastingStateStore
from .base import BaseSyncTransport, SyncStatus
from .codec import FASTING_PATH, decode_session, encode_session


class CrossDeviceSync:
    """Keeps the local store and the paired device's store in step."""

    def __init__(
        self,
        store: FastingStateStore,
        transport: BaseSyncTransport,
        path: str = FASTING_PATH,
    ):
        self.store = store
        self.transport = transport
        self.path = path
        self.logger = get_sync_logger(__name__).bind(transport=transport.name, path=path)
        self._pending: set[asyncio.Task] = set()
        self._attached = False
        self._stats = {"sent": 0, "failed": 0, "received": 0, "dropped": 0}

    def attach(self) -> None:
        """Start pushing local mutations and accepting inbound messages."""
        if self._attached:
            return
        self.store.add_local_mutation_listener(self.on_local_mutation)
        self.transport.add_listener(self.on_message)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self.store.remove_local_mutation_listener(self.on_local_mutation)
        self.transport.remove_listener(self.on_message)
        self._attached = False

    def on_local_mutation(self, session: FastingSession) -> None:
        """
        Schedule a push of ``session`` without blocking the mutation caller.

        Must run inside the event loop (store mutations always do).
        """
        try:
            data_map = encode_session(session)
        except Exception as e:
            self._stats["failed"] += 1
            self.logger.error("Failed to encode session for sync", error=str(e))
            return

        task = asyncio.get_running_loop().create_task(self._push(data_map))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _push(self, data_map: dict[str, Any]) -> None:
        try:
            result = await self.transport.send(self.path, data_map)
        except Exception as e:
            self._stats["failed"] += 1
            self.logger.error("Error updating fasting state on paired device", error=str(e))
            return

        if result.status is SyncStatus.SUCCESS:
            self._stats["sent"] += 1
            self.logger.info(
                "Fasting state pushed to paired device",
                is_fasting=data_map.get("is_fasting"),
                delivery_time_ms=result.delivery_time_ms
            )
        else:
            self._stats["failed"] += 1
            self.logger.error(
                "Error updating fasting state on paired device",
                reason=result.message
            )

    async def on_message(self, path: str, data_map: dict[str, Any]) -> None:
        """Apply an inbound message addressed to the fasting path."""
        if path != self.path:
            self.logger.debug("Ignoring message for another path", message_path=path)
            return

        try:
            session = decode_session(data_map)
        except MalformedSyncMessageError as e:
            self._stats["dropped"] += 1
            self.logger.warning(
                "Malformed sync message dropped",
                error=str(e),
                raw_data=e.raw_data
            )
            return

        await self.store.update_from_remote(
            start_time_millis=session.start_time_millis,
            goal_id=session.fasting_goal_id,
            is_fasting=session.is_fasting,
            updated_at_millis=session.last_updated_millis,
        )
        self._stats["received"] += 1
        self.logger.info(
            "Fasting state received from paired device",
            is_fasting=session.is_fasting,
            start_time_millis=session.start_time_millis
        )

    async def flush(self) -> None:
        """Wait for every in-flight push to finish."""
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def get_stats(self) -> dict[str, Any]:
        """Get sync statistics."""
        return {**self._stats, "pending": len(self._pending)}
