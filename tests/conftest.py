# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from task_tracker.core.state import AppState
from task_tracker.tasks.task_store import TaskStore

from .fakes import FakeRemoteStore, seed_tables


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="task-tracker-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        backend_url="http://backend.test",
        backend_anon_key="anon-key",
        request_timeout_seconds=5.0,
        avatars_bucket="avatars",
        password_reset_redirect="http://app.test/profile",
        rebalance_min_gap=1e-6,
        console_enabled=False,
    )


@pytest.fixture()
def remote() -> FakeRemoteStore:
    return FakeRemoteStore(seed_tables())


@pytest.fixture()
def notices() -> list[str]:
    return []


@pytest.fixture()
def store(remote: FakeRemoteStore, notices: list[str]) -> TaskStore:
    return TaskStore(remote, notify=notices.append)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    """AppState wired with the in-memory store and no auth/avatars."""
    return AppState(settings=settings, task_store=store)
