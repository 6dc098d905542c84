# src/task_tracker/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the task store and the console.

The core depends on Protocols instead of concrete implementations.
This keeps the hosted backend swappable and makes testing easier.
"""

from typing import Any, Awaitable, Callable, Protocol

Row = dict[str, Any]

# (column, ascending) pairs, applied in order.
Ordering = list[tuple[str, bool]]

Notify = Callable[[str], None]
# User-facing transient notification (console print, toast, ...).


class RemoteStore(Protocol):
    """
    Row-oriented store (tasks, clientes, tipos, solicitantes, statuses, app_config, profiles).

    Writes return the full stored row. Every method raises StoreError on failure.
    """

    def select(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        order: Ordering | None = None,
        limit: int | None = None,
    ) -> Awaitable[list[Row]]: ...

    def insert(self, table: str, row: Row) -> Awaitable[Row]: ...
    def update(self, table: str, row_id: Any, fields: Row) -> Awaitable[Row]: ...
    def delete(self, table: str, row_id: Any) -> Awaitable[None]: ...
    def upsert(self, table: str, row: Row) -> Awaitable[Row]: ...


class AuthBackend(Protocol):
    """Session and profile access. Implementing auth itself is the backend's job."""

    def get_session(self) -> Any | None: ...
    def on_session_change(self, callback: Callable[[str, Any | None], None]) -> Callable[[], None]: ...

    def sign_in_with_password(self, email: str, password: str) -> Awaitable[Any]: ...
    def sign_up(self, email: str, password: str, username: str) -> Awaitable[Any]: ...
    def sign_out(self) -> Awaitable[None]: ...
    def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> Awaitable[None]: ...

    def fetch_profile(self) -> Awaitable[Any | None]: ...
    def update_profile(
        self,
        *,
        username: str | None = None,
        avatar_url: str | None = None,
    ) -> Awaitable[Any]: ...


class BlobStorage(Protocol):
    """Object storage used for avatar images only."""

    def download(self, path: str) -> Awaitable[bytes]: ...
    def upload(self, path: str, content: bytes, content_type: str | None = None) -> Awaitable[None]: ...
