# src/task_tracker/remote/auth.py

from __future__ import annotations

"""
Auth collaborator over the hosted backend's GoTrue API (/auth/v1).

This is a client only: credentials are checked by the backend. The client keeps
the current session in memory and tells listeners when it changes, so the
RestStore can switch to the user's access token.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from ..core.errors import AuthError, StoreError
from ..core.ports import RemoteStore
from ..tasks.task_models import Profile, parse_ts

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"
PROFILES_TABLE = "profiles"

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

SessionListener = Callable[[str, "Session | None"], None]

_FRIENDLY_MESSAGES: tuple[tuple[str, str], ...] = (
    ("Invalid login credentials", "Invalid login credentials. Check your e-mail and password."),
    ("User already registered", "This e-mail is already registered. Try signing in."),
    ("Password should be at least 6 characters", "The password must be at least 6 characters long."),
    ("Unable to validate email address: invalid format", "The e-mail format is invalid."),
    ("Email not confirmed", "Your e-mail is not confirmed yet. Please check your inbox."),
)


def friendly_auth_error_message(err: Exception) -> str:
    msg = str(getattr(err, "message", None) or err)
    for needle, friendly in _FRIENDLY_MESSAGES:
        if needle in msg:
            return friendly
    return "An unexpected error occurred. Please try again."


@dataclass(slots=True)
class User:
    id: str
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    identities: list[Any] | None = None
    created_at: datetime | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> User:
        return cls(
            id=str(data["id"]),
            email=data.get("email"),
            metadata=dict(data.get("user_metadata") or {}),
            identities=data.get("identities"),
            created_at=parse_ts(data.get("created_at")),
        )


@dataclass(slots=True)
class Session:
    access_token: str
    refresh_token: str | None
    user: User
    expires_at: float | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Session:
        expires_at = data.get("expires_at")
        if expires_at is None and data.get("expires_in") is not None:
            expires_at = time.time() + float(data["expires_in"])
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=data.get("refresh_token"),
            user=User.from_json(data["user"]),
            expires_at=float(expires_at) if expires_at is not None else None,
        )


@dataclass(slots=True, frozen=True)
class SignUpResult:
    user: User | None
    session: Session | None
    # Backend answers an existing address with a user that has no identities.
    already_registered: bool = False


def fallback_profile(user: User) -> Profile:
    """Profile built from the auth user when the profiles row can't be read."""
    username = user.metadata.get("username") or (user.email or "").split("@")[0] or "User"
    return Profile(
        id=user.id,
        username=str(username),
        avatar_url=user.metadata.get("avatar_url"),
        updated_at=datetime.now(UTC),
    )


class AuthClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        store: RemoteStore,
        profile_timeout_seconds: float = 5.0,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._store = store
        self._profile_timeout = float(profile_timeout_seconds)

        self._session: Session | None = None
        self._profile: Profile | None = None
        self._listeners: list[SessionListener] = []

    # ---- session ----

    def get_session(self) -> Session | None:
        return self._session

    @property
    def user(self) -> User | None:
        return self._session.user if self._session else None

    @property
    def profile(self) -> Profile | None:
        return self._profile

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_session(self, event: str, session: Session | None) -> None:
        self._session = session
        if session is None:
            self._profile = None
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Session listener failed event=%s", event)

    # ---- http ----

    async def _post(
        self,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        token: str | None = None,
    ) -> Any:
        headers = {"apikey": self._api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = await self._client.post(f"{AUTH_PATH}{path}", json=json, params=params, headers=headers)
        except httpx.TransportError as e:
            raise AuthError(f"Network error talking to the auth service: {e}") from e

        if resp.is_error:
            message = resp.reason_phrase or "Auth request failed"
            code: str | None = None
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = str(body.get("msg") or body.get("error_description") or body.get("message") or message)
                raw_code = body.get("error_code") or body.get("error")
                code = str(raw_code) if raw_code is not None else None
            raise AuthError(message, status=resp.status_code, code=code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise AuthError(f"Invalid response from the auth service: {e}", status=resp.status_code) from e

    # ---- public API ----

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        data = await self._post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = Session.from_json(data)
        logger.info("Signed in user=%s", session.user.id)
        self._set_session(SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, username: str) -> SignUpResult:
        data = await self._post(
            "/signup",
            json={"email": email, "password": password, "data": {"username": username}},
        ) or {}

        session: Session | None = None
        if data.get("access_token"):
            session = Session.from_json(data)
            user: User | None = session.user
        elif data.get("id"):
            user = User.from_json(data)
        else:
            user = None

        already = bool(user is not None and user.identities is not None and len(user.identities) == 0)
        if session is not None:
            self._set_session(SIGNED_IN, session)
        logger.info("Sign-up done user=%s already_registered=%s", user.id if user else None, already)
        return SignUpResult(user=user, session=session, already_registered=already)

    async def sign_out(self) -> None:
        session = self._session
        try:
            if session is not None:
                await self._post("/logout", token=session.access_token)
        finally:
            # The local session goes away even when the server rejects the token.
            self._set_session(SIGNED_OUT, None)
            logger.info("Signed out")

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._post("/recover", json={"email": email}, params=params)

    async def fetch_profile(self) -> Profile | None:
        """
        Read the signed-in user's profile row.

        A failed or slow read falls back to a profile built from user metadata.
        """
        user = self.user
        if user is None:
            self._profile = None
            return None

        try:
            rows = await asyncio.wait_for(
                self._store.select(PROFILES_TABLE, filters={"id": user.id}, limit=1),
                timeout=self._profile_timeout,
            )
            self._profile = Profile.from_row(rows[0]) if rows else None
        except (StoreError, TimeoutError):
            logger.exception("Error fetching profile user=%s; using fallback", user.id)
            self._profile = fallback_profile(user)
        return self._profile

    async def update_profile(self, *, username: str | None = None, avatar_url: str | None = None) -> Profile:
        user = self.user
        if user is None:
            raise AuthError("Not signed in.")

        row: dict[str, Any] = {"id": user.id, "updated_at": datetime.now(UTC).isoformat()}
        if username is not None:
            row["username"] = username
        if avatar_url is not None:
            row["avatar_url"] = avatar_url

        stored = await self._store.upsert(PROFILES_TABLE, row)
        self._profile = Profile.from_row(stored)
        return self._profile
