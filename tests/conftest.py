"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from fastsync_app.models.session import FastingSession
from fastsync_app.persistence.session_store import SessionStore
from fastsync_app.state.store import FastingStateStore

from tests.helpers import T0, ManualTimer


@pytest.fixture
def timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "fasting_state.db")


@pytest.fixture
def session_store(db_path: str) -> SessionStore:
    return SessionStore(db_path)


@pytest.fixture
def store(session_store: SessionStore, timer: ManualTimer) -> FastingStateStore:
    return FastingStateStore(session_store, clock=timer.clock)


@pytest.fixture
def fasting_session() -> FastingSession:
    """An open 16:8 fast that started an hour before T0."""
    return FastingSession(
        is_fasting=True,
        start_time_millis=T0 - 3_600_000,
        fasting_goal_id="16:8",
        last_updated_millis=T0 - 3_600_000,
    )
