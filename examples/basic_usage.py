#!/usr/bin/env python3
"""
Basic Usage Example - FastSync fasting tracker

This script runs a phone and a watch in one process, connected through the
in-process loopback transport. It shows how to:
- Build two devices from configuration
- Start a fast on one device and watch it tick on the other
- Change the goal and stop the fast from the paired device
- Read the widget summary and sync statistics

Run: python examples/basic_usage.py
"""

import asyncio
import tempfile
from pathlib import Path

from fastsync_app.app import FastingApp
from fastsync_app.consumers.today import build_fasting_summary
from fastsync_app.sync.loopback import LoopbackTransport
from fastsync_app.utils.time import MILLIS_PER_HOUR, format_duration, now_millis


def device_overrides(workdir: Path, device_id: str) -> dict:
    return {
        "store": {"db_path": str(workdir / f"{device_id}.db")},
        "sync": {"transport": "loopback", "device_id": device_id},
        "logging": {"level": "WARNING"},
    }


def print_device(label: str, app: FastingApp) -> None:
    session = app.store.current
    summary = build_fasting_summary(session, now_millis())
    print(f"📱 {label}:")
    print(f"  Fasting: {session.is_fasting}")
    print(f"  Goal: {summary.goal.display_label}")
    print(f"  Elapsed (ticker): {format_duration(app.ticker.current_elapsed_millis)}")
    print(f"  Progress: {summary.progress_percentage}%  ({summary.hours_remaining}h to go)")
    print()


async def main():
    """Run the two-device demo."""
    print("🚀 FastSync - Basic Usage Demo")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmp:
        workdir = Path(tmp)
        phone_transport, watch_transport = LoopbackTransport.pair()

        print("1. Building phone and watch...")
        phone = FastingApp.create(
            config_dir=workdir,
            overrides=device_overrides(workdir, "phone"),
            transport=phone_transport,
            setup_logging=True,
        )
        watch = FastingApp.create(
            config_dir=workdir,
            overrides=device_overrides(workdir, "watch"),
            transport=watch_transport,
        )
        await phone.start()
        await watch.start()
        print_device("Phone", phone)

        print("2. Starting a fast on the phone (backdated 3 hours)...")
        await phone.store.start_fasting(now_millis() - 3 * MILLIS_PER_HOUR)
        await phone.sync.flush()
        await asyncio.sleep(0.1)
        print_device("Watch", watch)

        print("3. Switching to 18:6 on the watch...")
        await watch.store.update_goal("18:6")
        await watch.sync.flush()
        await asyncio.sleep(0.1)
        print_device("Phone", phone)

        print("4. Stopping the fast on the watch...")
        await watch.store.stop_fasting()
        await watch.sync.flush()
        await asyncio.sleep(0.1)
        print_device("Phone", phone)

        print("5. Sync stats:")
        print(f"   Phone: {phone.sync.get_stats()}")
        print(f"   Watch: {watch.sync.get_stats()}")
        print()

        await phone.close()
        await watch.close()

    print("✅ Demo completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
