"""Base classes for device-to-device sync transports."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import structlog

MessageListener = Callable[[str, dict[str, Any]], Awaitable[None]]


class SyncStatus(Enum):
    """Outcome of handing a message to a transport."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Result of one send attempt."""
    status: SyncStatus
    path: str
    message: Optional[str] = None
    delivery_time_ms: Optional[int] = None
    error: Optional[Exception] = None


class SyncTransportError(Exception):
    """Base exception for sync transport errors."""
    pass


class SyncTransportUnavailableError(SyncTransportError):
    """Paired device or shared channel is not reachable."""
    pass


class BaseSyncTransport(ABC):
    """
    Base class for device-to-device transports.

    Delivery is at-most-once and best-effort: ``send`` hands a flat key/value
    map to the channel under a logical path and no acknowledgment is
    consumed. Inbound messages are dispatched to registered listeners.
    """

    def __init__(self, name: str, config: Any = None):
        self.name = name
        self.config = config
        self.logger = structlog.get_logger(f"sync.transport.{name}")
        self._listeners: list[MessageListener] = []
        self._send_count = 0
        self._error_count = 0
        self._received_count = 0

    @abstractmethod
    async def _send(self, path: str, data_map: dict[str, Any]) -> None:
        """
        Put one message on the channel.

        Raises:
            SyncTransportError: when the channel rejects the message.
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the channel is usable."""
        pass

    async def send(self, path: str, data_map: dict[str, Any]) -> SyncResult:
        """
        Send a message, converting failures into a FAILED result.

        Args:
            path: Logical path the message is addressed to
            data_map: Flat key/value payload

        Returns:
            Result of the attempt
        """
        start_time = time.monotonic()
        try:
            await self._send(path, data_map)
        except Exception as e:
            self._error_count += 1
            self.logger.warning(
                "Sync send failed",
                transport=self.name,
                path=path,
                error=str(e)
            )
            return SyncResult(
                status=SyncStatus.FAILED,
                path=path,
                message=f"Send error: {e}",
                error=e
            )

        self._send_count += 1
        return SyncResult(
            status=SyncStatus.SUCCESS,
            path=path,
            message=f"Sent via {self.name}",
            delivery_time_ms=int((time.monotonic() - start_time) * 1000)
        )

    def add_listener(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def dispatch(self, path: str, data_map: dict[str, Any]) -> None:
        """Hand an inbound message to every listener; listener errors are logged."""
        self._received_count += 1
        for listener in list(self._listeners):
            try:
                await listener(path, dict(data_map))
            except Exception as e:
                self.logger.error(
                    "Inbound message listener failed",
                    transport=self.name,
                    path=path,
                    error=str(e)
                )

    def get_stats(self) -> dict[str, Any]:
        """Get transport statistics."""
        attempts = self._send_count + self._error_count
        return {
            "name": self.name,
            "send_count": self._send_count,
            "error_count": self._error_count,
            "received_count": self._received_count,
            "success_rate": self._send_count / attempts if attempts > 0 else 0.0
        }

    def reset_stats(self) -> None:
        """Reset transport statistics."""
        self._send_count = 0
        self._error_count = 0
        self._received_count = 0
