# src/task_tracker/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires the HTTP adapters and the task store into AppState,
- keeps the store's bearer token in sync with the auth session.
"""

from __future__ import annotations

import logging

import httpx

from ..config import get_settings
from ..core.ports import Notify
from ..core.state import AppState
from ..remote.auth import AuthClient, Session
from ..remote.avatars import AvatarStorage
from ..remote.rest_store import RestStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def create_initial_state(*, settings=None, notify: Notify | None = None, transport=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings(). `transport` lets tests plug an
    httpx.MockTransport in place of the network.
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    if not settings.backend_url:
        logger.warning("TRACKER_BACKEND_URL is not set; every remote call will fail.")

    http_client = httpx.AsyncClient(
        base_url=settings.backend_url or "http://localhost",
        timeout=httpx.Timeout(settings.request_timeout_seconds),
        transport=transport,
    )

    rest = RestStore(http_client, api_key=settings.backend_anon_key)
    avatars = AvatarStorage(http_client, api_key=settings.backend_anon_key, bucket=settings.avatars_bucket)
    auth = AuthClient(http_client, api_key=settings.backend_anon_key, store=rest)

    def _sync_token(event: str, session: Session | None) -> None:
        token = session.access_token if session else None
        rest.set_access_token(token)
        avatars.set_access_token(token)
        logger.debug("Auth event %s; bearer token %s", event, "set" if token else "cleared")

    auth.on_session_change(_sync_token)

    task_store = TaskStore(
        rest,
        notify=notify,
        rebalance_min_gap=settings.rebalance_min_gap,
    )

    return AppState(
        settings=settings,
        task_store=task_store,
        auth=auth,
        avatars=avatars,
        http_client=http_client,
    )


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    client = state.http_client
    if client is None:
        return
    try:
        await client.aclose()
    except Exception:
        logger.debug("HTTP client close failed.", exc_info=True)
