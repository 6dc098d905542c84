# src/task_tracker/remote/avatars.py

from __future__ import annotations

import logging
import mimetypes
import uuid
from pathlib import PurePath

import httpx

from ..core.errors import StoreError

logger = logging.getLogger(__name__)

STORAGE_PATH = "/storage/v1/object"


def avatar_path(user_id: str, filename: str) -> str:
    """Object key for a new avatar: <userId>-<random>.<ext>."""
    ext = PurePath(filename).suffix.lstrip(".").lower() or "png"
    return f"{user_id}-{uuid.uuid4().hex}.{ext}"


class AvatarStorage:
    """BlobStorage over the hosted backend's object storage, one bucket."""

    def __init__(self, client: httpx.AsyncClient, *, api_key: str, bucket: str = "avatars") -> None:
        self._client = client
        self._api_key = api_key
        self._bucket = bucket
        self._access_token: str | None = None

    def set_access_token(self, token: str | None) -> None:
        self._access_token = token

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token or self._api_key}",
        }

    def _url(self, path: str) -> str:
        return f"{STORAGE_PATH}/{self._bucket}/{path.lstrip('/')}"

    async def download(self, path: str) -> bytes:
        try:
            resp = await self._client.get(self._url(path), headers=self._headers())
        except httpx.TransportError as e:
            raise StoreError(f"Network error downloading {path}: {e}") from e
        if resp.is_error:
            raise StoreError(f"Error downloading image {path}", status=resp.status_code)
        return resp.content

    async def upload(self, path: str, content: bytes, content_type: str | None = None) -> None:
        headers = self._headers()
        headers["Content-Type"] = content_type or mimetypes.guess_type(path)[0] or "application/octet-stream"
        try:
            resp = await self._client.post(self._url(path), content=content, headers=headers)
        except httpx.TransportError as e:
            raise StoreError(f"Network error uploading {path}: {e}") from e
        if resp.is_error:
            raise StoreError(f"Error uploading image {path}", status=resp.status_code)
        logger.info("Avatar uploaded path=%s bytes=%d", path, len(content))

    async def upload_avatar(self, user_id: str, filename: str, content: bytes) -> str:
        """Upload under a fresh key and return it (to be stored as profile.avatar_url)."""
        path = avatar_path(user_id, filename)
        await self.upload(path, content)
        return path
