# src/task_tracker/core/errors.py

from __future__ import annotations


class TrackerError(Exception):
    """Base class for errors raised by task_tracker."""


class StoreError(TrackerError):
    """A remote collaborator call failed (network, HTTP status or rejected row)."""

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (status={self.status})"


class AuthError(StoreError):
    """The auth backend rejected a request."""


class TaskValidationError(TrackerError, ValueError):
    """Required task fields are missing. Raised before any network call."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__("Missing required task fields: " + ", ".join(missing))
        self.missing = missing


class ConfigItemInUseError(TrackerError, ValueError):
    """A config item cannot be deleted while something still points at it."""
