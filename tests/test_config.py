# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

from task_tracker.config import Settings
from task_tracker.logging_setup import _ConsoleNoiseFilter, setup_logging


def test_settings_defaults(monkeypatch) -> None:
    for key in (
        "TRACKER_APP_NAME",
        "TRACKER_DATA_DIR",
        "TRACKER_BACKEND_URL",
        "TRACKER_REQUEST_TIMEOUT_SECONDS",
        "TRACKER_REBALANCE_MIN_GAP",
        "TRACKER_CONSOLE_ENABLED",
    ):
        monkeypatch.delenv(key, raising=False)

    s = Settings.from_env()

    assert s.app_name == "task-tracker"
    assert s.data_dir == Path(".local/task-tracker")
    assert s.backend_url == ""
    assert s.request_timeout_seconds == 15.0
    assert s.rebalance_min_gap == 1e-6
    assert s.console_enabled is True


def test_settings_read_and_clamp_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("TRACKER_BACKEND_URL", " https://backend.example/ ")
    monkeypatch.setenv("TRACKER_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TRACKER_REQUEST_TIMEOUT_SECONDS", "0.1")
    monkeypatch.setenv("TRACKER_REBALANCE_MIN_GAP", "not-a-number")
    monkeypatch.setenv("TRACKER_CONSOLE_ENABLED", "off")

    s = Settings.from_env()

    assert s.backend_url == "https://backend.example"
    assert s.data_dir == tmp_path
    assert s.request_timeout_seconds == 1.0
    assert s.rebalance_min_gap == 1e-6
    assert s.console_enabled is False


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_noise_filter() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("task_tracker.tasks.task_store", logging.DEBUG))
    assert not f.filter(_record("httpx", logging.INFO))
    assert f.filter(_record("httpx", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert not f.filter(_record("asyncio", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))


def test_setup_logging_uses_settings(settings) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        log_file = setup_logging(settings)

        logging.getLogger("task_tracker.test").debug("hello file")
        for h in root.handlers:
            h.flush()

        assert log_file == settings.data_dir / "task-tracker-test.log"
        assert "[task-tracker-test] DEBUG task_tracker.test: hello file" in log_file.read_text(encoding="utf-8")
        console = next(h for h in root.handlers if not isinstance(h, logging.FileHandler))
        assert console.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
