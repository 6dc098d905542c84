# tests/fakes.py

from __future__ import annotations

import copy
from datetime import UTC, datetime, timedelta
from typing import Any

from task_tracker.core.errors import StoreError

Row = dict[str, Any]

BASE_TS = datetime(2024, 1, 1, tzinfo=UTC)


def ts(seconds: int) -> str:
    return (BASE_TS + timedelta(seconds=seconds)).isoformat()


def task_row(
    task_id: str,
    position: float,
    *,
    created: int = 0,
    description: str | None = None,
    client_id: str = "cl-1",
    type_id: str = "tp-1",
    requester_id: str = "rq-1",
    status_id: str = "st-todo",
    link: str | None = None,
) -> Row:
    return {
        "id": task_id,
        "tarefa": description or f"Task {task_id}",
        "nome_cliente_id": client_id,
        "tipo_id": type_id,
        "solicitado_por_id": requester_id,
        "status_id": status_id,
        "runrunit_task": link,
        "position": position,
        "criado_em": ts(created),
        "atualizado_em": ts(created),
    }


class FakeRemoteStore:
    """
    In-memory RemoteStore.

    - Records every call as (op, table) for "no network call happened" assertions
    - fail_on(op, table[, row_id]) makes matching calls raise StoreError
    - Writes return copies of the stored rows, like the real backend
    """

    def __init__(self, tables: dict[str, list[Row]] | None = None) -> None:
        self.tables: dict[str, list[Row]] = {k: copy.deepcopy(v) for k, v in (tables or {}).items()}
        self.calls: list[tuple[str, str]] = []
        self._failures: set[tuple[str, str, Any]] = set()
        self._seq = 0

    def fail_on(self, op: str, table: str = "*", row_id: Any = None) -> None:
        self._failures.add((op, table, row_id))

    def clear_failures(self) -> None:
        self._failures.clear()

    def _check(self, op: str, table: str, row_id: Any = None) -> None:
        self.calls.append((op, table))
        keys = {(op, table, None), (op, "*", None)}
        if row_id is not None:
            keys.add((op, table, row_id))
        if keys & self._failures:
            raise StoreError(f"simulated {op} failure on {table}", status=503)

    def _rows(self, table: str) -> list[Row]:
        return self.tables.setdefault(table, [])

    def _find(self, table: str, row_id: Any) -> Row:
        for row in self._rows(table):
            if row.get("id") == row_id:
                return row
        raise StoreError(f"No row {row_id} in {table}", status=406, code="PGRST116")

    async def select(self, table, *, filters=None, order=None, limit=None) -> list[Row]:
        self._check("select", table)
        rows = [copy.deepcopy(r) for r in self._rows(table)]
        for column, value in (filters or {}).items():
            rows = [r for r in rows if r.get(column) == value]
        for column, ascending in reversed(order or []):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=not ascending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def insert(self, table: str, row: Row) -> Row:
        self._check("insert", table)
        self._seq += 1
        stored = copy.deepcopy(row)
        stored.setdefault("id", f"{table}-{self._seq}")
        if table == "tasks":
            stored.setdefault("criado_em", ts(1000 + self._seq))
            stored.setdefault("atualizado_em", stored["criado_em"])
        self._rows(table).append(stored)
        return copy.deepcopy(stored)

    async def update(self, table: str, row_id: Any, fields: Row) -> Row:
        self._check("update", table, row_id)
        row = self._find(table, row_id)
        row.update(copy.deepcopy(fields))
        return copy.deepcopy(row)

    async def delete(self, table: str, row_id: Any) -> None:
        self._check("delete", table, row_id)
        self.tables[table] = [r for r in self._rows(table) if r.get("id") != row_id]

    async def upsert(self, table: str, row: Row) -> Row:
        self._check("upsert", table)
        for existing in self._rows(table):
            if existing.get("id") == row.get("id"):
                existing.update(copy.deepcopy(row))
                return copy.deepcopy(existing)
        stored = copy.deepcopy(row)
        self._rows(table).append(stored)
        return copy.deepcopy(stored)


def seed_tables() -> dict[str, list[Row]]:
    """Three open tasks A/B/C on the default GAP grid plus a small config."""
    return {
        "tasks": [
            task_row("task-a", 65536, created=1, description="Write report", client_id="cl-1"),
            task_row("task-b", 131072, created=2, description="Fix login", client_id="cl-2", status_id="st-doing"),
            task_row("task-c", 196608, created=3, description="Deploy", client_id="cl-1", link="https://runrun.it/42"),
        ],
        "clientes": [
            {"id": "cl-1", "nome": "Acme", "cor": "#ff0000"},
            {"id": "cl-2", "nome": "Globex", "cor": "#00ff00"},
            {"id": "cl-3", "nome": "Initech", "cor": "#0000ff"},
        ],
        "tipos": [{"id": "tp-1", "nome": "Bug", "cor": "#111111"}],
        "solicitantes": [{"id": "rq-1", "nome": "Ana", "cor": "#222222"}],
        "statuses": [
            {"id": "st-todo", "nome": "Pendente", "cor": "#aaaaaa"},
            {"id": "st-doing", "nome": "Em andamento", "cor": "#bbbbbb"},
            {"id": "st-done", "nome": "Entregue", "cor": "#cccccc"},
            {"id": "st-hold", "nome": "Pausado", "cor": "#dddddd"},
        ],
        "app_config": [
            {
                "id": 1,
                "in_progress_status_id": "st-doing",
                "entregue_status_id": "st-done",
                "table_column_order": None,
                "kanban_status_order": None,
            }
        ],
    }
