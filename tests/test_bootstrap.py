# tests/test_bootstrap.py

from __future__ import annotations

import httpx
import pytest

from task_tracker.cli.bootstrap import create_initial_state, shutdown_state
from task_tracker.cli.commands import registry
from task_tracker.tasks.task_models import LoadState

SESSION_JSON = {
    "access_token": "user-jwt",
    "expires_in": 3600,
    "user": {"id": "user-1", "email": "ana@example.com", "identities": [{"id": "i1"}]},
}


class Backend:
    """Tiny stand-in for the hosted backend: auth, one profile row and empty tables."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/auth/v1/token":
            return httpx.Response(200, json=SESSION_JSON)
        if path == "/auth/v1/logout":
            return httpx.Response(204)
        if path == "/rest/v1/profiles":
            return httpx.Response(200, json=[{"id": "user-1", "username": "ana"}])
        if path.startswith("/rest/v1/"):
            return httpx.Response(200, json=[])
        return httpx.Response(404, json={"message": "not found"})


@pytest.mark.asyncio
async def test_state_wiring_and_bearer_token_follows_session(settings) -> None:
    backend = Backend()
    notes: list[str] = []
    state = create_initial_state(settings=settings, notify=notes.append, transport=httpx.MockTransport(backend))

    try:
        assert settings.data_dir.is_dir()
        assert state.auth is not None and state.avatars is not None

        await state.task_store.fetch_all()
        assert state.task_store.load_state is LoadState.LOADED
        assert state.task_store.last_load_error is None
        assert backend.requests[0].headers["Authorization"] == "Bearer anon-key"

        assert await registry.handle(state, "/login ana@example.com secret") == "Signed in as ana@example.com."
        assert await registry.handle(state, "/whoami") == "ana (ana@example.com)"

        backend.requests.clear()
        await state.task_store.fetch_all()
        assert backend.requests
        assert all(r.headers["Authorization"] == "Bearer user-jwt" for r in backend.requests)

        assert await registry.handle(state, "/logout") == "Signed out."
        backend.requests.clear()
        await state.task_store.fetch_all()
        assert all(r.headers["Authorization"] == "Bearer anon-key" for r in backend.requests)
    finally:
        await shutdown_state(state)

    assert state.http_client.is_closed
