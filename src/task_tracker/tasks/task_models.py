# src/task_tracker/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

Row = dict[str, Any]

DEFAULT_TABLE_COLUMNS: tuple[str, ...] = (
    "cliente",
    "tarefa",
    "tipo",
    "solicitadoPor",
    "status",
    "actions",
)

APP_CONFIG_ROW_ID = 1


class ConfigTable(StrEnum):
    """Remote tables holding the named, colored categories."""

    CLIENTS = "clientes"
    TYPES = "tipos"
    REQUESTERS = "solicitantes"
    STATUSES = "statuses"


class LoadState(StrEnum):
    """
    Cache lifecycle.

    There is no error state: a failed bulk load still ends in LOADED
    (with empty defaults) so the UI shell never waits forever.
    """

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    LOADED = "loaded"


def parse_ts(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        return None


def format_ts(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    description: str

    client_id: str | None
    type_id: str | None
    requester_id: str | None
    status_id: str | None

    position: float = 0.0
    external_link: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Row) -> Task:
        return cls(
            id=str(row["id"]),
            description=str(row.get("tarefa") or ""),
            client_id=row.get("nome_cliente_id"),
            type_id=row.get("tipo_id"),
            requester_id=row.get("solicitado_por_id"),
            status_id=row.get("status_id"),
            position=float(row.get("position") or 0.0),
            external_link=row.get("runrunit_task") or None,
            created_at=parse_ts(row.get("criado_em")),
            updated_at=parse_ts(row.get("atualizado_em")),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "tarefa": self.description,
            "nome_cliente_id": self.client_id,
            "tipo_id": self.type_id,
            "solicitado_por_id": self.requester_id,
            "status_id": self.status_id,
            "runrunit_task": self.external_link,
            "position": self.position,
            "criado_em": format_ts(self.created_at),
            "atualizado_em": format_ts(self.updated_at),
        }


# Python-side field names accepted by TaskStore.add_task / update_task.
TASK_FIELD_COLUMNS: dict[str, str] = {
    "description": "tarefa",
    "client_id": "nome_cliente_id",
    "type_id": "tipo_id",
    "requester_id": "solicitado_por_id",
    "status_id": "status_id",
    "external_link": "runrunit_task",
    "position": "position",
}


def task_fields_to_row(fields: dict[str, Any]) -> Row:
    """Translate Task attribute names into store column names."""
    row: Row = {}
    for name, value in fields.items():
        column = TASK_FIELD_COLUMNS.get(name)
        if column is None:
            raise KeyError(f"Unknown task field: {name}")
        row[column] = value
    return row


@dataclass(frozen=True, slots=True)
class ConfigItem:
    id: str
    name: str
    color: str

    @classmethod
    def from_row(cls, row: Row) -> ConfigItem:
        return cls(id=str(row["id"]), name=str(row.get("nome") or ""), color=str(row.get("cor") or ""))

    def to_row(self) -> Row:
        return {"id": self.id, "nome": self.name, "cor": self.color}


@dataclass(frozen=True, slots=True)
class AppConfig:
    id: int = APP_CONFIG_ROW_ID
    in_progress_status_id: str | None = None
    delivered_status_id: str | None = None
    table_column_order: list[str] = field(default_factory=lambda: list(DEFAULT_TABLE_COLUMNS))
    kanban_status_order: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Row | None) -> AppConfig:
        if not row:
            return cls()
        return cls(
            id=int(row.get("id") or APP_CONFIG_ROW_ID),
            in_progress_status_id=row.get("in_progress_status_id"),
            delivered_status_id=row.get("entregue_status_id"),
            table_column_order=list(row.get("table_column_order") or DEFAULT_TABLE_COLUMNS),
            kanban_status_order=list(row.get("kanban_status_order") or []),
        )


APP_CONFIG_FIELD_COLUMNS: dict[str, str] = {
    "in_progress_status_id": "in_progress_status_id",
    "delivered_status_id": "entregue_status_id",
    "table_column_order": "table_column_order",
    "kanban_status_order": "kanban_status_order",
}


@dataclass(frozen=True, slots=True)
class ConfigData:
    clients: list[ConfigItem] = field(default_factory=list)
    types: list[ConfigItem] = field(default_factory=list)
    requesters: list[ConfigItem] = field(default_factory=list)
    statuses: list[ConfigItem] = field(default_factory=list)
    app_config: AppConfig = field(default_factory=AppConfig)

    @classmethod
    def initial(cls) -> ConfigData:
        return cls()

    def items(self, table: ConfigTable) -> list[ConfigItem]:
        return getattr(self, _TABLE_ATTRS[table])

    def with_items(self, table: ConfigTable, items: list[ConfigItem]) -> ConfigData:
        values = {attr: getattr(self, attr) for attr in _TABLE_ATTRS.values()}
        values[_TABLE_ATTRS[table]] = items
        return ConfigData(app_config=self.app_config, **values)

    def with_app_config(self, app_config: AppConfig) -> ConfigData:
        return ConfigData(
            clients=self.clients,
            types=self.types,
            requesters=self.requesters,
            statuses=self.statuses,
            app_config=app_config,
        )


_TABLE_ATTRS: dict[ConfigTable, str] = {
    ConfigTable.CLIENTS: "clients",
    ConfigTable.TYPES: "types",
    ConfigTable.REQUESTERS: "requesters",
    ConfigTable.STATUSES: "statuses",
}

# Task column that references each config table.
TASK_REFERENCE_FIELD: dict[ConfigTable, str] = {
    ConfigTable.CLIENTS: "client_id",
    ConfigTable.TYPES: "type_id",
    ConfigTable.REQUESTERS: "requester_id",
    ConfigTable.STATUSES: "status_id",
}


@dataclass(slots=True)
class Profile:
    id: str
    username: str
    avatar_url: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Row) -> Profile:
        return cls(
            id=str(row["id"]),
            username=str(row.get("username") or ""),
            avatar_url=row.get("avatar_url"),
            updated_at=parse_ts(row.get("updated_at")),
        )
