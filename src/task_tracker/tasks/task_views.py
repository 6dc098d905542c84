# src/task_tracker/tasks/task_views.py

from __future__ import annotations

"""
Read-side helpers for the board, table and history views.

Everything here is a pure function over cached tasks/config: no network.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from ..core.errors import TaskValidationError
from .positions import move_item
from .task_models import DEFAULT_TABLE_COLUMNS, AppConfig, ConfigData, ConfigItem, Task

DEFAULT_STATUS_NAME = "Pendente"
DEFAULT_ITEM_COLOR = "#8B5CF6"

REQUIRED_TASK_FIELDS: tuple[str, ...] = (
    "description",
    "client_id",
    "type_id",
    "requester_id",
    "status_id",
)


@dataclass(slots=True, frozen=True)
class TaskFilters:
    query: str = ""
    status_id: str | None = None
    client_id: str | None = None
    type_id: str | None = None
    requester_id: str | None = None


@dataclass(slots=True, frozen=True)
class TaskStats:
    total: int
    active: int
    in_progress: int
    delivered: int


def _find(items: Iterable[ConfigItem], item_id: str | None) -> ConfigItem | None:
    if not item_id:
        return None
    return next((i for i in items if i.id == item_id), None)


def _matches_query(task: Task, config: ConfigData, needle: str) -> bool:
    if needle in task.description.lower():
        return True
    client = _find(config.clients, task.client_id)
    if client is not None and needle in client.name.lower():
        return True
    return bool(task.external_link) and needle in (task.external_link or "").lower()


def filter_tasks(
        tasks: Iterable[Task],
        config: ConfigData,
        filters: TaskFilters | None = None,
        *,
        history: bool = False,
) -> list[Task]:
    """
    Tasks visible in the main view (everything not delivered) or the
    history view (only delivered), narrowed by search and exact filters.
    """
    filters = filters or TaskFilters()
    delivered_id = config.app_config.delivered_status_id

    if history:
        out = [t for t in tasks if t.status_id == delivered_id]
    else:
        out = [t for t in tasks if t.status_id != delivered_id]

    needle = filters.query.strip().lower()
    if needle:
        out = [t for t in out if _matches_query(t, config, needle)]

    if filters.status_id:
        out = [t for t in out if t.status_id == filters.status_id]
    if filters.client_id:
        out = [t for t in out if t.client_id == filters.client_id]
    if filters.type_id:
        out = [t for t in out if t.type_id == filters.type_id]
    if filters.requester_id:
        out = [t for t in out if t.requester_id == filters.requester_id]

    return out


def board_statuses(config: ConfigData) -> list[ConfigItem]:
    """Statuses shown as kanban columns: all but the delivered one, in the saved order."""
    delivered_id = config.app_config.delivered_status_id
    statuses = [s for s in config.statuses if s.id != delivered_id]

    order = config.app_config.kanban_status_order
    if not order:
        return statuses

    rank = {status_id: i for i, status_id in enumerate(order)}
    # Statuses missing from the saved order keep their relative order at the end.
    return sorted(statuses, key=lambda s: rank.get(s.id, len(rank)))


def kanban_columns(tasks: Iterable[Task], config: ConfigData) -> list[tuple[ConfigItem, list[Task]]]:
    tasks = list(tasks)
    return [(status, [t for t in tasks if t.status_id == status.id]) for status in board_statuses(config)]


def default_task_fields(config: ConfigData) -> dict[str, Any]:
    """Initial values for a new-task form."""
    delivered_id = config.app_config.delivered_status_id
    available = [s for s in config.statuses if s.id != delivered_id]
    status = next((s for s in available if s.name == DEFAULT_STATUS_NAME), None)
    if status is None and available:
        status = available[0]

    return {
        "description": "",
        "client_id": config.clients[0].id if config.clients else None,
        "type_id": config.types[0].id if config.types else None,
        "requester_id": config.requesters[0].id if config.requesters else None,
        "status_id": status.id if status else None,
        "external_link": None,
    }


def validate_task_fields(data: dict[str, Any]) -> None:
    missing: list[str] = []
    for name in REQUIRED_TASK_FIELDS:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    if missing:
        raise TaskValidationError(missing)


def task_stats(tasks: Iterable[Task], config: ConfigData) -> TaskStats:
    app = config.app_config
    total = active = in_progress = delivered = 0
    for task in tasks:
        total += 1
        if app.delivered_status_id and task.status_id == app.delivered_status_id:
            delivered += 1
            continue
        active += 1
        if app.in_progress_status_id and task.status_id == app.in_progress_status_id:
            in_progress += 1
    return TaskStats(total=total, active=active, in_progress=in_progress, delivered=delivered)


def table_column_order(app_config: AppConfig) -> list[str]:
    """Saved column order, falling back to the default for unknown/missing entries."""
    saved = [c for c in app_config.table_column_order if c in DEFAULT_TABLE_COLUMNS]
    missing = [c for c in DEFAULT_TABLE_COLUMNS if c not in saved]
    return saved + missing


def move_column(order: Sequence[str], active: str, over: str) -> list[str] | None:
    """Column drag: put `active` where `over` is. None if nothing changes."""
    if active not in order or over not in order or active == over:
        return None
    return move_item(order, order.index(active), order.index(over))
