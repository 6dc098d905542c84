# src/task_tracker/remote/rest_store.py

"""
RemoteStore over a PostgREST endpoint (the hosted backend's /rest/v1 API).

Only the small subset the task store needs:
- select with eq filters, ordering and limit
- insert / update / upsert returning the stored row
- delete by id
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import StoreError
from ..core.ports import Ordering, Row

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"


def _eq(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _error_from_response(resp: httpx.Response) -> StoreError:
    message = resp.reason_phrase or "Request failed"
    code: str | None = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = str(body.get("message") or body.get("msg") or body.get("error_description") or message)
        raw_code = body.get("code") or body.get("error")
        code = str(raw_code) if raw_code is not None else None
    return StoreError(message, status=resp.status_code, code=code)


class RestStore:
    """
    PostgREST-backed RemoteStore.

    The anon key goes in the `apikey` header; the bearer token is the anon key
    until a user signs in (see set_access_token).
    """

    def __init__(self, client: httpx.AsyncClient, *, api_key: str) -> None:
        self._client = client
        self._api_key = api_key
        self._access_token: str | None = None

    def set_access_token(self, token: str | None) -> None:
        self._access_token = token

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        url = f"{REST_PATH}/{table}"
        try:
            resp = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(prefer),
            )
        except httpx.TransportError as e:
            logger.info("Remote store network error %s %s: %s", method, table, e.__class__.__name__)
            raise StoreError(f"Network error talking to the store: {e}") from e

        if resp.is_error:
            err = _error_from_response(resp)
            logger.info("Remote store %s %s failed: %s", method, table, err)
            raise err

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            logger.info("Remote store %s %s returned a non-JSON body", method, table)
            raise StoreError(f"Invalid response from the store: {e}", status=resp.status_code) from e

    @staticmethod
    def _single(rows: Any, table: str) -> Row:
        if isinstance(rows, list):
            if len(rows) != 1:
                raise StoreError(f"Expected one row from {table}, got {len(rows)}", code="PGRST116")
            return rows[0]
        if isinstance(rows, dict):
            return rows
        raise StoreError(f"Unexpected response from {table}")

    async def select(
        self,
        table: str,
        *,
        filters: dict[str, Any] | None = None,
        order: Ordering | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        params: dict[str, str] = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = _eq(value)
        if order:
            params["order"] = ",".join(f"{col}.{'asc' if asc else 'desc'}" for col, asc in order)
        if limit is not None:
            params["limit"] = str(int(limit))

        rows = await self._request("GET", table, params=params)
        return list(rows or [])

    async def insert(self, table: str, row: Row) -> Row:
        rows = await self._request("POST", table, json=row, prefer="return=representation")
        return self._single(rows, table)

    async def update(self, table: str, row_id: Any, fields: Row) -> Row:
        rows = await self._request(
            "PATCH",
            table,
            params={"id": _eq(row_id)},
            json=fields,
            prefer="return=representation",
        )
        return self._single(rows, table)

    async def delete(self, table: str, row_id: Any) -> None:
        await self._request("DELETE", table, params={"id": _eq(row_id)})

    async def upsert(self, table: str, row: Row) -> Row:
        rows = await self._request(
            "POST",
            table,
            json=row,
            prefer="resolution=merge-duplicates,return=representation",
        )
        return self._single(rows, table)
