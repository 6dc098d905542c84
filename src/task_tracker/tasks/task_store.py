# src/task_tracker/tasks/task_store.py

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from ..core.errors import ConfigItemInUseError, StoreError
from ..core.ports import Notify, RemoteStore
from .positions import append_position, needs_rebalance, rebalance, reorder, sort_tasks
from .task_models import (
    APP_CONFIG_FIELD_COLUMNS,
    APP_CONFIG_ROW_ID,
    TASK_REFERENCE_FIELD,
    AppConfig,
    ConfigData,
    ConfigItem,
    ConfigTable,
    LoadState,
    Task,
    task_fields_to_row,
)
from .task_views import move_column, table_column_order, validate_task_fields

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
APP_CONFIG_TABLE = "app_config"

TASK_ORDER = [("position", True), ("criado_em", True)]

REORDER_FAILED_MESSAGE = "Failed to save the new order. Reverting."
REBALANCE_FAILED_MESSAGE = "Some positions could not be saved; the list now shows the saved order."


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class TaskStore:
    """
    In-memory cache of tasks and config over a RemoteStore.

    Every mutation swaps in a new list / ConfigData instead of editing the old
    one in place, so any earlier reference is a usable snapshot. Tasks are
    frozen dataclasses.

    Concurrency:
    - single event loop, no queue and no locks
    - two overlapping writes race; the last response to arrive wins
    - only the reorder path rolls back (to the snapshot taken before it)
    """

    def __init__(
        self,
        remote: RemoteStore,
        *,
        notify: Notify | None = None,
        rebalance_min_gap: float = 1e-6,
    ) -> None:
        self._remote = remote
        self._notify = notify
        self._rebalance_min_gap = float(rebalance_min_gap)

        self._tasks: list[Task] = []
        self._config: ConfigData = ConfigData.initial()
        self._load_state = LoadState.UNINITIALIZED
        self._last_load_error: Exception | None = None

    # ---- state ----

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def config(self) -> ConfigData:
        return self._config

    @property
    def load_state(self) -> LoadState:
        return self._load_state

    @property
    def is_data_loaded(self) -> bool:
        return self._load_state == LoadState.LOADED

    @property
    def last_load_error(self) -> Exception | None:
        """Error swallowed by the last fetch_all(), if it fell back to defaults."""
        return self._last_load_error

    def set_notifier(self, notify: Notify | None) -> None:
        self._notify = notify

    def _emit(self, text: str) -> None:
        if self._notify is None:
            return
        try:
            self._notify(text)
        except Exception:
            logger.debug("Notifier failed.", exc_info=True)

    # ---- bulk load ----

    async def fetch_all(self) -> None:
        """
        Load tasks, the four config tables and app_config concurrently.

        Any failure falls back to empty data (logged, no retry). The cache
        always ends up LOADED.
        """
        self._load_state = LoadState.LOADING
        tables = list(ConfigTable)
        try:
            results = await asyncio.gather(
                self._remote.select(TASKS_TABLE, order=TASK_ORDER),
                *(self._remote.select(table.value) for table in tables),
                self._remote.select(APP_CONFIG_TABLE, limit=1),
            )
            task_rows, *config_rows, app_rows = results

            config = ConfigData.initial()
            for table, rows in zip(tables, config_rows):
                config = config.with_items(table, [ConfigItem.from_row(r) for r in rows or []])
            config = config.with_app_config(AppConfig.from_row(app_rows[0] if app_rows else None))

            self._tasks = sort_tasks(Task.from_row(r) for r in task_rows or [])
            self._config = config
            self._last_load_error = None
            logger.info(
                "Data loaded tasks=%d statuses=%d clients=%d",
                len(self._tasks),
                len(config.statuses),
                len(config.clients),
            )
        except Exception as exc:
            logger.exception("Error loading data from the remote store; using empty defaults")
            self._tasks = []
            self._config = ConfigData.initial()
            self._last_load_error = exc
        finally:
            self._load_state = LoadState.LOADED

    # ---- tasks ----

    async def add_task(
        self,
        *,
        description: str,
        client_id: str | None,
        type_id: str | None,
        requester_id: str | None,
        status_id: str | None,
        external_link: str | None = None,
    ) -> Task:
        fields: dict[str, Any] = {
            "description": description,
            "client_id": client_id,
            "type_id": type_id,
            "requester_id": requester_id,
            "status_id": status_id,
            "external_link": external_link or None,
        }
        validate_task_fields(fields)

        fields["position"] = append_position(t.position for t in self._tasks)
        row = await self._remote.insert(TASKS_TABLE, task_fields_to_row(fields))

        task = Task.from_row(row)
        self._tasks = [*self._tasks, task]
        logger.debug("Task added id=%s position=%s", task.id, task.position)
        return task

    async def update_task(self, task_id: str, **fields: Any) -> Task:
        row = task_fields_to_row(fields)
        row["atualizado_em"] = _now_iso()

        stored = await self._remote.update(TASKS_TABLE, task_id, row)
        task = Task.from_row(stored)

        tasks = [task if t.id == task_id else t for t in self._tasks]
        if "position" in fields:
            tasks = sort_tasks(tasks)
        self._tasks = tasks
        logger.debug("Task updated id=%s fields=%s", task_id, sorted(fields))
        return task

    async def delete_task(self, task_id: str) -> None:
        await self._remote.delete(TASKS_TABLE, task_id)
        self._tasks = [t for t in self._tasks if t.id != task_id]
        logger.debug("Task deleted id=%s", task_id)

    async def reorder_table_view_tasks(self, active_id: str, over_id: str) -> bool | None:
        """
        Drag `active_id` onto `over_id`'s slot.

        The new order is applied to the cache before the remote call. If the
        call fails, the cache is restored to the exact pre-reorder list and the
        user is notified.

        Returns None if nothing moved, True if persisted, False if rolled back.
        """
        result = reorder(self._tasks, active_id, over_id)
        if result is None:
            return None

        snapshot = self._tasks
        moved, new_position = result
        self._tasks = moved

        try:
            await self._remote.update(
                TASKS_TABLE,
                active_id,
                {"position": new_position, "atualizado_em": _now_iso()},
            )
        except Exception:
            logger.exception("Failed to reorder task id=%s over=%s", active_id, over_id)
            self._tasks = snapshot
            self._emit(REORDER_FAILED_MESSAGE)
            return False

        logger.debug("Task reordered id=%s position=%s", active_id, new_position)

        if needs_rebalance(self._tasks, self._rebalance_min_gap):
            try:
                await self.rebalance_positions()
            except Exception:
                logger.warning("Position rebalance failed after reorder.", exc_info=True)
                self._emit(REBALANCE_FAILED_MESSAGE)

        return True

    async def rebalance_positions(self) -> int:
        """
        Renumber every position to an even GAP spacing, persisting only
        the rows that change.

        Writes run concurrently. When some of them fail, the rows that were
        written keep their new position, the rest keep the old one, and the
        cache is re-sorted so it shows the order the backend now holds. A
        StoreError is raised afterwards.

        Returns the number of rows rewritten.
        """
        renumbered, changed = rebalance(self._tasks)
        if not changed:
            return 0

        previous = {t.id: t for t in self._tasks}
        self._tasks = renumbered
        now = _now_iso()
        results = await asyncio.gather(
            *(
                self._remote.update(TASKS_TABLE, t.id, {"position": t.position, "atualizado_em": now})
                for t in changed
            ),
            return_exceptions=True,
        )

        failed = {t.id: r for t, r in zip(changed, results) if isinstance(r, BaseException)}
        if failed:
            self._tasks = sort_tasks(previous[t.id] if t.id in failed else t for t in self._tasks)
            first = next(iter(failed.values()))
            logger.error(
                "Position rebalance saved %d of %d rows; failed ids=%s",
                len(changed) - len(failed),
                len(changed),
                sorted(failed),
                exc_info=first,
            )
            raise StoreError(f"Could not save {len(failed)} of {len(changed)} positions") from first

        logger.info("Rebalanced positions for %d tasks", len(changed))
        return len(changed)

    # ---- app config ----

    async def update_app_config(self, **fields: Any) -> AppConfig:
        row: dict[str, Any] = {}
        for name, value in fields.items():
            column = APP_CONFIG_FIELD_COLUMNS.get(name)
            if column is None:
                raise KeyError(f"Unknown app config field: {name}")
            row[column] = value

        stored = await self._remote.update(APP_CONFIG_TABLE, APP_CONFIG_ROW_ID, row)
        app_config = AppConfig.from_row(stored)
        self._config = self._config.with_app_config(app_config)
        return app_config

    async def reorder_table_columns(self, active: str, over: str) -> list[str] | None:
        order = move_column(table_column_order(self._config.app_config), active, over)
        if order is None:
            return None
        await self.update_app_config(table_column_order=order)
        return order

    # ---- config items ----

    async def add_config_item(self, table: ConfigTable | str, *, name: str, color: str) -> ConfigItem:
        table = ConfigTable(table)
        row = await self._remote.insert(table.value, {"nome": name, "cor": color})
        item = ConfigItem.from_row(row)
        self._config = self._config.with_items(table, [*self._config.items(table), item])
        return item

    async def update_config_item(
        self,
        table: ConfigTable | str,
        item_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
    ) -> ConfigItem:
        table = ConfigTable(table)
        fields: dict[str, Any] = {}
        if name is not None:
            fields["nome"] = name
        if color is not None:
            fields["cor"] = color

        row = await self._remote.update(table.value, item_id, fields)
        item = ConfigItem.from_row(row)
        items = [item if i.id == item_id else i for i in self._config.items(table)]
        self._config = self._config.with_items(table, items)
        return item

    def ensure_config_item_deletable(self, table: ConfigTable | str, item_id: str) -> None:
        """Raise ConfigItemInUseError if a special pointer or any task references the item."""
        table = ConfigTable(table)
        if table == ConfigTable.STATUSES:
            app = self._config.app_config
            if item_id == app.in_progress_status_id:
                raise ConfigItemInUseError("Status is set as the in-progress status.")
            if item_id == app.delivered_status_id:
                raise ConfigItemInUseError("Status is set as the delivered status.")

        ref_field = TASK_REFERENCE_FIELD[table]
        if any(getattr(t, ref_field) == item_id for t in self._tasks):
            raise ConfigItemInUseError("Item is used by one or more tasks.")

    async def delete_config_item(self, table: ConfigTable | str, item_id: str) -> None:
        table = ConfigTable(table)
        self.ensure_config_item_deletable(table, item_id)

        await self._remote.delete(table.value, item_id)
        items = [i for i in self._config.items(table) if i.id != item_id]
        self._config = self._config.with_items(table, items)

    # ---- lookups (cache only) ----

    def _lookup(self, table: ConfigTable, item_id: str | None) -> ConfigItem | None:
        if not item_id:
            return None
        return next((i for i in self._config.items(table) if i.id == item_id), None)

    def get_client_by_id(self, item_id: str | None) -> ConfigItem | None:
        return self._lookup(ConfigTable.CLIENTS, item_id)

    def get_type_by_id(self, item_id: str | None) -> ConfigItem | None:
        return self._lookup(ConfigTable.TYPES, item_id)

    def get_requester_by_id(self, item_id: str | None) -> ConfigItem | None:
        return self._lookup(ConfigTable.REQUESTERS, item_id)

    def get_status_by_id(self, item_id: str | None) -> ConfigItem | None:
        return self._lookup(ConfigTable.STATUSES, item_id)

    def get_task_by_id(self, task_id: str) -> Task | None:
        return next((t for t in self._tasks if t.id == task_id), None)
