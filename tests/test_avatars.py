# tests/test_avatars.py

from __future__ import annotations

import re

import httpx
import pytest

from task_tracker.core.errors import StoreError
from task_tracker.remote.avatars import AvatarStorage, avatar_path


def _storage(handler) -> AvatarStorage:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://backend.test")
    return AvatarStorage(client, api_key="anon-key", bucket="avatars")


def test_avatar_path_shape() -> None:
    path = avatar_path("user-1", "Me At The Beach.JPG")
    assert re.fullmatch(r"user-1-[0-9a-f]{32}\.jpg", path)
    assert avatar_path("user-1", "noext").endswith(".png")
    assert avatar_path("u", "a.png") != avatar_path("u", "a.png")


@pytest.mark.asyncio
async def test_upload_and_download() -> None:
    blobs: dict[str, bytes] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            blobs[request.url.path] = request.content
            assert request.headers["Content-Type"] == "image/png"
            return httpx.Response(200, json={"Key": request.url.path})
        if request.url.path in blobs:
            return httpx.Response(200, content=blobs[request.url.path])
        return httpx.Response(404, json={"error": "not_found"})

    storage = _storage(handler)

    path = await storage.upload_avatar("user-1", "face.png", b"\x89PNG...")
    assert path.startswith("user-1-")
    assert await storage.download(path) == b"\x89PNG..."
    assert f"/storage/v1/object/avatars/{path}" in blobs

    with pytest.raises(StoreError) as exc_info:
        await storage.download("missing.png")
    assert exc_info.value.status == 404
