"""Shared-directory transport between two devices."""

import asyncio
import fcntl
import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Callable, Optional

from ..utils.time import MILLIS_PER_SECOND, now_millis
from .base import BaseSyncTransport, SyncTransportUnavailableError

REQUIRED_ENVELOPE_KEYS = {"id", "path", "data"}


class FileSyncTransport(BaseSyncTransport):
    """
    Device-to-device channel backed by a directory both devices can reach.

    Each logical path is one JSON "data item" file holding the latest message,
    a unique message id and the id of the device that wrote it. Writers
    replace the file atomically; readers poll every item and dispatch each
    message id once, skipping items they wrote themselves. Modification times
    are only used to avoid re-reading an item already found unreadable.
    """

    def __init__(
        self,
        name: str,
        spool_dir: str,
        device_id: str,
        poll_interval_ms: int = 1000,
        clock: Callable[[], int] = now_millis,
    ):
        super().__init__(name)
        self.spool_dir = Path(spool_dir)
        self.device_id = device_id
        self.poll_interval_ms = poll_interval_ms
        self._clock = clock
        self._seen: dict[Path, str] = {}
        self._unreadable: dict[Path, int] = {}
        self._poll_task: Optional[asyncio.Task] = None

        self.spool_dir.mkdir(parents=True, exist_ok=True)

    def item_path(self, path: str) -> Path:
        """File holding the data item for a logical path."""
        slug = path.strip("/").replace("/", "__") or "root"
        return self.spool_dir / f"{slug}.json"

    async def _send(self, path: str, data_map: dict[str, Any]) -> None:
        envelope = {
            "id": uuid.uuid4().hex,
            "origin": self.device_id,
            "path": path,
            "sent_at": self._clock(),
            "data": data_map,
        }
        await asyncio.to_thread(self._write_item, self.item_path(path), envelope)

    def _write_item(self, target: Path, envelope: dict[str, Any]) -> None:
        if not self.spool_dir.is_dir():
            raise SyncTransportUnavailableError(f"Spool directory missing: {self.spool_dir}")

        payload = json.dumps(envelope)
        with open(self.spool_dir / ".lock", "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            fd, tmp_name = tempfile.mkstemp(dir=self.spool_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(payload)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
            # Own writes are never dispatched back to this device
            self._seen[target] = envelope["id"]

    async def poll_once(self) -> int:
        """
        Dispatch data items written by other devices since the last poll.

        Returns:
            Number of messages dispatched
        """
        items = await asyncio.to_thread(self._read_new_items)
        for envelope in items:
            await self.dispatch(envelope["path"], envelope["data"])
        return len(items)

    def _read_new_items(self) -> list[dict[str, Any]]:
        items = []
        for item_file in sorted(self.spool_dir.glob("*.json")):
            try:
                mtime = item_file.stat().st_mtime_ns
            except FileNotFoundError:
                continue
            if self._unreadable.get(item_file) == mtime:
                continue

            try:
                envelope = json.loads(item_file.read_text())
            except (OSError, json.JSONDecodeError) as e:
                self._unreadable[item_file] = mtime
                self.logger.warning(
                    "Unreadable data item dropped",
                    transport=self.name,
                    item=str(item_file),
                    error=str(e)
                )
                continue

            if not isinstance(envelope, dict) or not REQUIRED_ENVELOPE_KEYS <= envelope.keys():
                self._unreadable[item_file] = mtime
                self.logger.warning(
                    "Data item without envelope dropped",
                    transport=self.name,
                    item=str(item_file)
                )
                continue

            self._unreadable.pop(item_file, None)

            if self._seen.get(item_file) == envelope["id"]:
                continue
            self._seen[item_file] = envelope["id"]

            if envelope.get("origin") == self.device_id:
                continue
            items.append(envelope)
        return items

    def start_polling(self) -> asyncio.Task:
        """Poll in a background task until ``stop_polling``."""
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        return self._poll_task

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self) -> None:
        interval = self.poll_interval_ms / MILLIS_PER_SECOND
        while True:
            try:
                await self.poll_once()
            except OSError as e:
                self.logger.warning("Spool poll failed", transport=self.name, error=str(e))
            await asyncio.sleep(interval)

    def health_check(self) -> bool:
        """Check if the spool directory is writable."""
        try:
            test_file = self.spool_dir / ".health_check_test"
            test_file.write_text("test")
            test_file.unlink()
            return True
        except OSError as e:
            self.logger.warning(
                "Health check failed",
                transport=self.name,
                error=str(e)
            )
            return False
