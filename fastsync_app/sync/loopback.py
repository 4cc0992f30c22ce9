"""In-process transport connecting two stores that live in one process."""

from typing import Any, Optional

from .base import BaseSyncTransport, SyncTransportUnavailableError


class LoopbackTransport(BaseSyncTransport):
    """
    Transport whose peer is another ``LoopbackTransport`` in the same process.

    Sending awaits the peer's listeners directly. ``connected`` can be toggled
    to simulate the paired device going out of range.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self.peer: Optional["LoopbackTransport"] = None
        self.connected = True
        self.sent_messages: list[tuple[str, dict[str, Any]]] = []

    @classmethod
    def pair(cls, first: str = "phone", second: str = "watch") -> tuple["LoopbackTransport", "LoopbackTransport"]:
        """Create two transports wired to each other."""
        a, b = cls(first), cls(second)
        a.peer, b.peer = b, a
        return a, b

    async def _send(self, path: str, data_map: dict[str, Any]) -> None:
        if self.peer is None or not self.connected or not self.peer.connected:
            raise SyncTransportUnavailableError(f"{self.name} has no reachable peer")
        self.sent_messages.append((path, dict(data_map)))
        await self.peer.dispatch(path, data_map)

    def health_check(self) -> bool:
        return self.peer is not None and self.connected and self.peer.connected
