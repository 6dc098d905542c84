# src/task_tracker/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from ..core.errors import AuthError, ConfigItemInUseError, StoreError, TaskValidationError
from ..core.state import AppState
from ..remote.auth import friendly_auth_error_message
from ..tasks.task_models import ConfigItem, ConfigTable, Task
from ..tasks.task_views import (
    DEFAULT_ITEM_COLOR,
    TaskFilters,
    default_task_fields,
    filter_tasks,
    kanban_columns,
    table_column_order,
    task_stats,
)

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler = Callable[..., CommandResult]

logger = logging.getLogger(__name__)

SHORT_ID = 8
MIN_USERNAME_LENGTH = 3
COLOR_RE = re.compile(r"#[0-9a-fA-F]{6}")
TABLES_HINT = "|".join(t.value for t in ConfigTable)
ADD_FIELDS = 6

SPECIAL_STATUS_FIELDS: dict[str, tuple[str, str]] = {
    "in-progress": ("in_progress_status_id", "in progress"),
    "delivered": ("delivered_status_id", "delivered"),
}


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Handlers take (state, args) or (state, args, emit) and may be sync or async.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        result = handler(state, args, emit) if nparams >= 3 else handler(state, args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting helpers ----

def _name(item: ConfigItem | None) -> str:
    return item.name if item else "?"


def format_task(state: AppState, task: Task) -> str:
    store = state.task_store
    line = (
        f"{task.id[:SHORT_ID]}  [{_name(store.get_status_by_id(task.status_id))}] "
        f"{_name(store.get_client_by_id(task.client_id))} | {task.description} "
        f"({_name(store.get_type_by_id(task.type_id))}, by {_name(store.get_requester_by_id(task.requester_id))})"
    )
    if task.external_link:
        line += f" <{task.external_link}>"
    return line


def find_task(state: AppState, ref: str) -> Task | None:
    """Task by full id or unique id prefix."""
    matches = [t for t in state.task_store.tasks if t.id == ref or t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _table(ref: str) -> ConfigTable | None:
    try:
        return ConfigTable(ref.lower())
    except ValueError:
        return None


def _split_fields(args: list[str]) -> list[str]:
    """Re-join whitespace-split args and split them on "|"."""
    return [p.strip() for p in " ".join(args).split("|")]


def resolve_item(items: list[ConfigItem], ref: str) -> ConfigItem | None:
    ref = ref.strip()
    if not ref:
        return None
    lowered = ref.lower()
    for item in items:
        if item.id == ref or item.name.lower() == lowered:
            return item
    return None


# ---- commands ----

def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.task_store
    stats = task_stats(store.tasks, store.config)
    session = state.auth.get_session() if state.auth else None
    who = session.user.email if session else "anonymous"
    lines = [
        "Status:",
        f"  Data: {store.load_state.value}",
        f"  Tasks: {stats.total} total, {stats.active} active, "
        f"{stats.in_progress} in progress, {stats.delivered} delivered",
        f"  User: {who}",
    ]
    if store.last_load_error is not None:
        lines.append(f"  Last load failed: {store.last_load_error}")
    return "\n".join(lines)


async def cmd_reload(state: AppState, args: list[str]) -> str:
    store = state.task_store
    await store.fetch_all()
    if store.last_load_error is not None:
        return "Could not load data; showing empty lists. See the log for details."
    return f"Loaded {len(store.tasks)} tasks."


def _list(state: AppState, args: list[str], *, history: bool) -> str:
    filters = TaskFilters(query=" ".join(args)) if args else state.filters
    tasks = filter_tasks(state.task_store.tasks, state.task_store.config, filters, history=history)
    title = "Delivered tasks" if history else "Active tasks"
    if not tasks:
        return f"{title}: none."
    return "\n".join([f"{title} ({len(tasks)}):", *(f"  {format_task(state, t)}" for t in tasks)])


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks           -> active tasks in table order
    /tasks <search>  -> filtered by description, client name or link
    """
    return _list(state, args, history=False)


def cmd_history(state: AppState, args: list[str]) -> str:
    return _list(state, args, history=True)


def cmd_board(state: AppState, args: list[str]) -> str:
    store = state.task_store
    visible = filter_tasks(store.tasks, store.config, state.filters)
    columns = kanban_columns(visible, store.config)
    if not columns:
        return "No statuses configured."
    lines: list[str] = []
    for status, tasks in columns:
        lines.append(f"== {status.name} ({len(tasks)})")
        lines.extend(f"  {t.id[:SHORT_ID]} {t.description}" for t in tasks)
    return "\n".join(lines)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add description | client | type | requester | status | link

    Everything after the description is optional and defaults like the new-task form.
    """
    store = state.task_store
    parts = _split_fields(args)
    if len(parts) > ADD_FIELDS:
        return "Usage: /add description | client | type | requester | status | link"
    parts += [""] * (ADD_FIELDS - len(parts))
    description, client_ref, type_ref, requester_ref, status_ref, link = parts

    fields: dict[str, Any] = default_task_fields(store.config)
    fields["description"] = description
    fields["external_link"] = link or None

    config = store.config
    for key, ref, items in (
        ("client_id", client_ref, config.clients),
        ("type_id", type_ref, config.types),
        ("requester_id", requester_ref, config.requesters),
        ("status_id", status_ref, config.statuses),
    ):
        if not ref:
            continue
        item = resolve_item(items, ref)
        if item is None:
            return f"Unknown value: {ref}"
        fields[key] = item.id

    try:
        task = await store.add_task(**fields)
    except TaskValidationError as e:
        return f"Please fill in all required fields ({', '.join(e.missing)})."
    except StoreError:
        logger.exception("add_task failed")
        return "An error occurred while saving the task."
    return f"Task created: {format_task(state, task)}"


async def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <task> <over-task>: put the task where the other one is."""
    if len(args) != 2:
        return "Usage: /move <task> <over-task>"
    active = find_task(state, args[0])
    over = find_task(state, args[1])
    if active is None or over is None:
        return "Task not found (use an id prefix from /tasks)."

    result = await state.task_store.reorder_table_view_tasks(active.id, over.id)
    if result is None:
        return "Nothing to move."
    if result is False:
        return "Order not saved."
    return "Order updated."


async def cmd_set_status(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /set-status <task> <status>"
    store = state.task_store
    task = find_task(state, args[0])
    if task is None:
        return "Task not found."
    status = resolve_item(store.config.statuses, " ".join(args[1:]))
    if status is None:
        return "Unknown status."

    try:
        await store.update_task(task.id, status_id=status.id)
    except StoreError:
        logger.exception("update_task(status) failed task_id=%s", task.id)
        return "An error occurred while updating the status."
    if status.id == store.config.app_config.delivered_status_id:
        return "Task delivered!"
    return "Status updated!"


async def cmd_delete(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /delete <task>"
    task = find_task(state, args[0])
    if task is None:
        return "Task not found."
    try:
        await state.task_store.delete_task(task.id)
    except StoreError:
        logger.exception("delete_task failed task_id=%s", task.id)
        return "An error occurred while deleting the task."
    return "Task deleted."


async def cmd_delete_item(state: AppState, args: list[str]) -> str:
    """/delete-item <table> <name>: remove a client, type, requester or status."""
    if len(args) < 2:
        return f"Usage: /delete-item <{TABLES_HINT}> <name>"
    store = state.task_store
    table = _table(args[0])
    if table is None:
        return f"Unknown table: {args[0]}"
    item = resolve_item(store.config.items(table), " ".join(args[1:]))
    if item is None:
        return "Item not found."
    try:
        await store.delete_config_item(table, item.id)
    except ConfigItemInUseError as e:
        return f"Cannot delete: {e}"
    except StoreError as e:
        return f"Error: {e.message}"
    return "Item deleted."


def cmd_items(state: AppState, args: list[str]) -> str:
    """/items <table>: list clients, types, requesters or statuses."""
    if len(args) != 1:
        return f"Usage: /items <{TABLES_HINT}>"
    table = _table(args[0])
    if table is None:
        return f"Unknown table: {args[0]}"

    config = state.task_store.config
    items = config.items(table)
    if not items:
        return f"{table.value}: none."

    marks = {
        config.app_config.in_progress_status_id: " (in progress)",
        config.app_config.delivered_status_id: " (delivered)",
    }
    lines = [f"{table.value} ({len(items)}):"]
    for item in items:
        mark = marks.get(item.id, "") if table == ConfigTable.STATUSES else ""
        lines.append(f"  {item.id[:SHORT_ID]}  {item.name} {item.color}{mark}")
    return "\n".join(lines)


async def cmd_add_item(state: AppState, args: list[str]) -> str:
    """/add-item <table> <name> [| #rrggbb]"""
    usage = f"Usage: /add-item <{TABLES_HINT}> <name> [| #rrggbb]"
    if len(args) < 2:
        return usage
    table = _table(args[0])
    if table is None:
        return f"Unknown table: {args[0]}"

    parts = _split_fields(args[1:])
    if len(parts) > 2:
        return usage
    name = parts[0]
    color = parts[1] if len(parts) > 1 and parts[1] else DEFAULT_ITEM_COLOR
    if not name:
        return usage
    if not COLOR_RE.fullmatch(color):
        return f"Invalid color: {color} (use #rrggbb)."

    try:
        item = await state.task_store.add_config_item(table, name=name, color=color)
    except StoreError as e:
        return f"Error: {e.message}"
    return f"Item added: {item.name} ({item.id[:SHORT_ID]})."


async def cmd_edit_item(state: AppState, args: list[str]) -> str:
    """/edit-item <table> <item> | <new name> [| #rrggbb]: an empty name keeps the current one."""
    usage = f"Usage: /edit-item <{TABLES_HINT}> <item> | <new name> [| #rrggbb]"
    if len(args) < 2:
        return usage
    table = _table(args[0])
    if table is None:
        return f"Unknown table: {args[0]}"

    parts = _split_fields(args[1:])
    if not 2 <= len(parts) <= 3:
        return usage
    store = state.task_store
    item = resolve_item(store.config.items(table), parts[0])
    if item is None:
        return "Item not found."
    name = parts[1] or None
    color = parts[2] if len(parts) > 2 and parts[2] else None
    if name is None and color is None:
        return "Nothing to change."
    if color is not None and not COLOR_RE.fullmatch(color):
        return f"Invalid color: {color} (use #rrggbb)."

    try:
        updated = await store.update_config_item(table, item.id, name=name, color=color)
    except StoreError as e:
        return f"Error: {e.message}"
    return f"Item updated: {updated.name} {updated.color}."


async def cmd_set_special(state: AppState, args: list[str]) -> str:
    """/set-special <in-progress|delivered> <status>"""
    if len(args) < 2 or args[0].lower() not in SPECIAL_STATUS_FIELDS:
        return "Usage: /set-special <in-progress|delivered> <status>"
    store = state.task_store
    status = resolve_item(store.config.statuses, " ".join(args[1:]))
    if status is None:
        return "Unknown status."

    field_name, label = SPECIAL_STATUS_FIELDS[args[0].lower()]
    try:
        await store.update_app_config(**{field_name: status.id})
    except StoreError as e:
        return f"Error: {e.message}"
    return f'Status "{status.name}" set as {label}.'


async def cmd_columns(state: AppState, args: list[str]) -> str:
    """
    /columns                  -> table column order
    /columns <column> <over>  -> move a column to where another one is
    """
    store = state.task_store
    if not args:
        return "Columns: " + ", ".join(table_column_order(store.config.app_config))
    if len(args) != 2:
        return "Usage: /columns [<column> <over-column>]"

    try:
        order = await store.reorder_table_columns(args[0], args[1])
    except StoreError as e:
        return f"Error: {e.message}"
    if order is None:
        return "Nothing to move (use column names from /columns)."
    return "Columns: " + ", ".join(order)


async def cmd_signup(state: AppState, args: list[str]) -> str:
    if state.auth is None:
        return "Auth is not configured."
    if len(args) != 3:
        return "Usage: /signup <email> <password> <username>"
    email, password, username = args
    if len(username) < MIN_USERNAME_LENGTH:
        return f"The username must be at least {MIN_USERNAME_LENGTH} characters long."

    try:
        result = await state.auth.sign_up(email, password, username)
    except AuthError as e:
        return friendly_auth_error_message(e)
    if result.already_registered:
        return "User already registered. A new confirmation e-mail was sent."
    if result.session is not None:
        await state.auth.fetch_profile()
        return f"Signed up and signed in as {result.session.user.email}."
    return "Signed up! Check your e-mail to confirm the account."


async def cmd_reset_password(state: AppState, args: list[str]) -> str:
    if state.auth is None:
        return "Auth is not configured."
    if len(args) != 1:
        return "Usage: /reset-password <email>"
    redirect = getattr(state.settings, "password_reset_redirect", "") or None
    try:
        await state.auth.reset_password_for_email(args[0], redirect_to=redirect)
    except AuthError as e:
        return friendly_auth_error_message(e)
    return "Password reset e-mail sent. Check your inbox."


async def cmd_profile(state: AppState, args: list[str]) -> str:
    """
    /profile              -> show username and avatar
    /profile <username>   -> change the username
    """
    auth = state.auth
    if auth is None or auth.get_session() is None:
        return "Not signed in."

    if not args:
        profile = auth.profile or await auth.fetch_profile()
        if profile is None:
            return "No profile yet. Use /profile <username> to create one."
        return f"Username: {profile.username}\nAvatar: {profile.avatar_url or '-'}"

    username = " ".join(args)
    if len(username) < MIN_USERNAME_LENGTH:
        return f"The username must be at least {MIN_USERNAME_LENGTH} characters long."
    if auth.profile is not None and auth.profile.username == username:
        return "Nothing to change."
    try:
        profile = await auth.update_profile(username=username)
    except StoreError:
        logger.exception("update_profile(username) failed")
        return "Error updating the profile."
    return f"Profile updated: {profile.username}."


async def cmd_avatar(state: AppState, args: list[str]) -> str:
    """/avatar <image file>: upload a new avatar and store it on the profile."""
    auth = state.auth
    if auth is None or state.avatars is None:
        return "Avatar storage is not configured."
    user = auth.user
    if user is None:
        return "Not signed in."
    if not args:
        return "Usage: /avatar <image file>"

    path = Path(" ".join(args)).expanduser()
    try:
        content = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        return f"Cannot read {path}: {e.strerror or e}"

    try:
        key = await state.avatars.upload_avatar(user.id, path.name, content)
        await auth.update_profile(avatar_url=key)
    except StoreError:
        logger.exception("Avatar upload failed user=%s", user.id)
        return "Error uploading the avatar."
    return f"Avatar updated ({key})."


async def cmd_login(state: AppState, args: list[str]) -> str:
    if state.auth is None:
        return "Auth is not configured."
    if len(args) != 2:
        return "Usage: /login <email> <password>"
    try:
        session = await state.auth.sign_in_with_password(args[0], args[1])
    except AuthError as e:
        return friendly_auth_error_message(e)
    await state.auth.fetch_profile()
    return f"Signed in as {session.user.email}."


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.auth is None or state.auth.get_session() is None:
        return "Not signed in."
    try:
        await state.auth.sign_out()
    except AuthError:
        logger.exception("sign_out failed")
        return "Signed out locally; the server did not confirm the sign-out."
    return "Signed out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    session = state.auth.get_session() if state.auth else None
    if session is None:
        return "Not signed in."
    profile = state.auth.profile
    name = profile.username if profile else session.user.email
    return f"{name} ({session.user.email})"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show load state, task counts and current user.")
registry.register("reload", cmd_reload, help_text="Reload tasks and config from the backend.")
registry.register("tasks", cmd_tasks, help_text="List active tasks: /tasks [search].", aliases=["ls"])
registry.register("history", cmd_history, help_text="List delivered tasks: /history [search].")
registry.register("board", cmd_board, help_text="Show the kanban board by status.")
registry.register(
    "add",
    cmd_add,
    help_text="Create a task: /add description | client | type | requester | status | link.",
)
registry.register("move", cmd_move, help_text="Reorder: /move <task> <over-task>.", aliases=["mv"])
registry.register("set-status", cmd_set_status, help_text="Change status: /set-status <task> <status>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <task>.", aliases=["rm"])
registry.register("items", cmd_items, help_text="List config items: /items <table>.")
registry.register("add-item", cmd_add_item, help_text="Add a config item: /add-item <table> <name> [| #rrggbb].")
registry.register(
    "edit-item",
    cmd_edit_item,
    help_text="Edit a config item: /edit-item <table> <item> | <new name> [| #rrggbb].",
)
registry.register("delete-item", cmd_delete_item, help_text="Delete a config item: /delete-item <table> <name>.")
registry.register(
    "set-special",
    cmd_set_special,
    help_text="Pick the special statuses: /set-special <in-progress|delivered> <status>.",
)
registry.register("columns", cmd_columns, help_text="Show or move table columns: /columns [<column> <over>].")
registry.register("login", cmd_login, help_text="Sign in: /login <email> <password>.")
registry.register("logout", cmd_logout, help_text="Sign out.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <email> <password> <username>.")
registry.register("reset-password", cmd_reset_password, help_text="Send a password reset e-mail: /reset-password <email>.")
registry.register("profile", cmd_profile, help_text="Show or change the username: /profile [username].")
registry.register("avatar", cmd_avatar, help_text="Upload an avatar: /avatar <image file>.")
registry.register("whoami", cmd_whoami, help_text="Show the signed-in user.")
