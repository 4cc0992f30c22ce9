"""Tests for the shared-directory sync transport."""

import json
import os
from unittest.mock import AsyncMock

import pytest

from fastsync_app.sync.base import SyncStatus
from fastsync_app.sync.codec import FASTING_PATH
from fastsync_app.sync.file_transport import FileSyncTransport

from tests.helpers import T0

MESSAGE = {
    "is_fasting": True,
    "start_time_millis": T0,
    "fasting_goal_id": "16:8",
    "update_timestamp": T0,
}


@pytest.fixture
def spool_dir(tmp_path) -> str:
    return str(tmp_path / "spool")


@pytest.fixture
def phone(spool_dir) -> FileSyncTransport:
    return FileSyncTransport("file:phone", spool_dir, device_id="phone", clock=lambda: T0)


@pytest.fixture
def watch(spool_dir) -> FileSyncTransport:
    return FileSyncTransport("file:watch", spool_dir, device_id="watch", clock=lambda: T0)


class TestFileSyncTransport:
    """Test data item exchange through the spool directory."""

    def test_creates_spool_directory(self, spool_dir, phone):
        assert os.path.isdir(spool_dir)

    def test_item_path(self, phone):
        assert phone.item_path(FASTING_PATH).name == "fasting_state.json"
        assert phone.item_path("/a/b").name == "a__b.json"
        assert phone.item_path("/").name == "root.json"

    @pytest.mark.asyncio
    async def test_send_writes_envelope(self, phone):
        result = await phone.send(FASTING_PATH, MESSAGE)

        assert result.status == SyncStatus.SUCCESS
        envelope = json.loads(phone.item_path(FASTING_PATH).read_text())
        assert len(envelope.pop("id")) == 32
        assert envelope == {
            "origin": "phone",
            "path": FASTING_PATH,
            "sent_at": T0,
            "data": MESSAGE,
        }
        assert not list(phone.spool_dir.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_peer_receives_message(self, phone, watch):
        listener = AsyncMock()
        watch.add_listener(listener)

        await phone.send(FASTING_PATH, MESSAGE)
        dispatched = await watch.poll_once()

        assert dispatched == 1
        listener.assert_awaited_once_with(FASTING_PATH, MESSAGE)
        assert watch.get_stats()["received_count"] == 1

    @pytest.mark.asyncio
    async def test_each_write_dispatched_once(self, phone, watch):
        listener = AsyncMock()
        watch.add_listener(listener)

        await phone.send(FASTING_PATH, MESSAGE)
        await watch.poll_once()

        assert await watch.poll_once() == 0
        assert listener.await_count == 1

    @pytest.mark.asyncio
    async def test_new_write_dispatched_again(self, phone, watch):
        listener = AsyncMock()
        watch.add_listener(listener)

        await phone.send(FASTING_PATH, MESSAGE)
        await watch.poll_once()
        await phone.send(FASTING_PATH, {**MESSAGE, "is_fasting": False})

        assert await watch.poll_once() == 1
        assert listener.await_args.args[1]["is_fasting"] is False

    @pytest.mark.asyncio
    async def test_write_with_unchanged_mtime_detected(self, phone, watch):
        """Coarse filesystem timestamps must not hide a second write."""
        listener = AsyncMock()
        watch.add_listener(listener)
        item = phone.item_path(FASTING_PATH)

        await phone.send(FASTING_PATH, MESSAGE)
        first = item.stat()
        await watch.poll_once()
        await phone.send(FASTING_PATH, {**MESSAGE, "fasting_goal_id": "18:6"})
        os.utime(item, ns=(first.st_atime_ns, first.st_mtime_ns))

        assert await watch.poll_once() == 1
        assert listener.await_args.args[1]["fasting_goal_id"] == "18:6"

    @pytest.mark.asyncio
    async def test_repaired_item_is_read(self, phone, watch):
        item = watch.item_path(FASTING_PATH)
        item.write_text("{not json")
        listener = AsyncMock()
        watch.add_listener(listener)
        assert await watch.poll_once() == 0

        await phone.send(FASTING_PATH, MESSAGE)
        stat = item.stat()
        os.utime(item, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000))

        assert await watch.poll_once() == 1
        listener.assert_awaited_once_with(FASTING_PATH, MESSAGE)

    @pytest.mark.asyncio
    async def test_own_writes_not_dispatched(self, phone):
        listener = AsyncMock()
        phone.add_listener(listener)

        await phone.send(FASTING_PATH, MESSAGE)

        assert await phone.poll_once() == 0
        listener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_own_writes_skipped_by_fresh_instance(self, spool_dir, phone):
        await phone.send(FASTING_PATH, MESSAGE)
        restarted = FileSyncTransport("file:phone", spool_dir, device_id="phone")
        listener = AsyncMock()
        restarted.add_listener(listener)

        assert await restarted.poll_once() == 0
        listener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_item_dropped(self, watch):
        (watch.spool_dir / "fasting_state.json").write_text("{not json")
        (watch.spool_dir / "other.json").write_text(json.dumps({"no": "envelope"}))
        listener = AsyncMock()
        watch.add_listener(listener)

        assert await watch.poll_once() == 0
        listener.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_spool_fails_send(self, phone):
        phone.spool_dir.rmdir()

        result = await phone.send(FASTING_PATH, MESSAGE)

        assert result.status == SyncStatus.FAILED
        assert phone.get_stats()["error_count"] == 1

    @pytest.mark.asyncio
    async def test_polling_lifecycle(self, phone):
        task = phone.start_polling()
        assert phone.start_polling() is task

        await phone.stop_polling()

        assert task.cancelled()

    def test_health_check(self, phone):
        assert phone.health_check() is True

    def test_health_check_fails_without_spool(self, phone):
        phone.spool_dir.rmdir()
        assert phone.health_check() is False
