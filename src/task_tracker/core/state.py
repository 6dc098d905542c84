# src/task_tracker/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_store import TaskStore
from ..tasks.task_views import TaskFilters


@dataclass
class AppState:
    # Settings object (config.Settings in the app, a SimpleNamespace in tests).
    settings: Any

    task_store: TaskStore
    auth: Any | None = None
    avatars: Any | None = None

    # Closed on shutdown (shared httpx.AsyncClient).
    http_client: Any | None = None

    filters: TaskFilters = field(default_factory=TaskFilters)
