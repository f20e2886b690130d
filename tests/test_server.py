"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


import io
import re
from typing import Any, Dict

import pytest
from PIL import Image

from avatarcard.config import BackgroundMode, OutputMode, Settings

from .conftest import AssetServer


def _query(avatar_url: str, **overrides: str) -> Dict[str, str]:
    query = {"url": avatar_url, "num": "42", "name": "Alice", "gcname": "TeamX"}
    query.update(overrides)
    return query


def _settings(asset_server: AssetServer, tmp_path: Any, **kwargs: Any) -> Settings:
    kwargs.setdefault("background_url", asset_server.url("bg.png"))
    return Settings(output_directory=str(tmp_path), **kwargs)


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["url", "num", "name", "gcname"])
@pytest.mark.parametrize(
    ("output_mode", "expected_keys"),
    [(OutputMode.PERSIST, {"success", "error"}), (OutputMode.STREAM, {"error"})],
)
async def test_missing_parameter(
    asset_server, make_client, tmp_path, missing, output_mode, expected_keys
) -> None:
    client = await make_client(_settings(asset_server, tmp_path, output_mode=output_mode))

    query = _query(asset_server.url("avatar.png"))
    del query[missing]

    response = await client.get("/api/pic", params=query)
    body = await response.json()

    assert response.status == 400
    assert set(body) == expected_keys
    assert body["error"] == "Missing 'url', 'num', 'name', or 'gcname'."
    assert body.get("success", False) is False

    # Validation happens before anything is fetched.
    assert sum(asset_server.hits.values()) == 0


@pytest.mark.asyncio
async def test_empty_parameter_is_missing(asset_server, make_client, tmp_path) -> None:
    client = await make_client(_settings(asset_server, tmp_path))

    response = await client.get("/api/pic", params=_query("http://x/a.png", name=""))

    assert response.status == 400


@pytest.mark.asyncio
async def test_persist(
    asset_server, make_client, tmp_path, background_png, avatar_png
) -> None:
    asset_server.add("bg.png", background_png)
    avatar_url = asset_server.add("avatar.png", avatar_png)

    client = await make_client(_settings(asset_server, tmp_path))

    response = await client.get("/api/pic", params=_query(avatar_url))
    body = await response.json()

    assert response.status == 200
    assert body["success"] is True

    match = re.fullmatch(r"http://127\.0\.0\.1:\d+(/images/[0-9a-f]{32}\.png)", body["url"])
    assert match is not None

    image_response = await client.get(match[1])
    assert image_response.status == 200

    with Image.open(io.BytesIO(await image_response.read())) as image:
        assert image.format == "PNG"
        assert image.size == (1080, 1920)


@pytest.mark.asyncio
async def test_persist_names_are_unique(
    asset_server, make_client, tmp_path, background_png, avatar_png
) -> None:
    asset_server.add("bg.png", background_png)
    avatar_url = asset_server.add("avatar.png", avatar_png)

    client = await make_client(_settings(asset_server, tmp_path))

    urls = set()
    for _ in range(3):
        response = await client.get("/api/pic", params=_query(avatar_url))
        urls.add((await response.json())["url"])

    assert len(urls) == 3
    assert len(list(tmp_path.iterdir())) == 3


@pytest.mark.asyncio
async def test_public_url(
    asset_server, make_client, tmp_path, background_png, avatar_png
) -> None:
    asset_server.add("bg.png", background_png)
    avatar_url = asset_server.add("avatar.png", avatar_png)

    client = await make_client(
        _settings(asset_server, tmp_path, public_url="https://cards.example.com")
    )

    response = await client.get("/api/pic", params=_query(avatar_url))
    url = (await response.json())["url"]

    assert re.fullmatch(r"https://cards\.example\.com/images/[0-9a-f]{32}\.png", url)


@pytest.mark.asyncio
async def test_stream(
    asset_server, make_client, tmp_path, background_png, avatar_png
) -> None:
    asset_server.add("bg.png", background_png)
    avatar_url = asset_server.add("avatar.png", avatar_png)

    client = await make_client(_settings(asset_server, tmp_path, output_mode=OutputMode.STREAM))

    response = await client.get("/api/pic", params=_query(avatar_url))

    assert response.status == 200
    assert response.content_type == "image/png"

    with Image.open(io.BytesIO(await response.read())) as image:
        assert image.size == (1080, 1920)

    # Nothing is written to disk when streaming.
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_avatar_is_not_an_image(
    asset_server, make_client, tmp_path, background_png
) -> None:
    asset_server.add("bg.png", background_png)
    avatar_url = asset_server.add(
        "avatar", b"<!DOCTYPE html><html><body>hi</body></html>", content_type="text/html"
    )

    client = await make_client(_settings(asset_server, tmp_path))

    response = await client.get("/api/pic", params=_query(avatar_url))
    body = await response.json()

    assert response.status == 500
    assert body["success"] is False
    assert body["error"].startswith("Failed to fetch image")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_avatar_not_found(asset_server, make_client, tmp_path, background_png) -> None:
    asset_server.add("bg.png", background_png)

    client = await make_client(_settings(asset_server, tmp_path))

    response = await client.get("/api/pic", params=_query(asset_server.url("missing.png")))
    body = await response.json()

    assert response.status == 500
    assert "404" in body["error"]


@pytest.mark.asyncio
async def test_per_request_background_is_fetched_every_time(
    asset_server, make_client, tmp_path, background_png, avatar_png
) -> None:
    asset_server.add("bg.png", background_png)
    avatar_url = asset_server.add("avatar.png", avatar_png)

    client = await make_client(_settings(asset_server, tmp_path))

    for _ in range(3):
        response = await client.get("/api/pic", params=_query(avatar_url))
        assert response.status == 200

    assert asset_server.hits["bg.png"] == 3
    assert asset_server.hits["avatar.png"] == 3


@pytest.mark.asyncio
async def test_cached_background_is_fetched_once(
    asset_server, make_client, tmp_path, background_png, avatar_png
) -> None:
    asset_server.add("bg.png", background_png)
    avatar_url = asset_server.add("avatar.png", avatar_png)

    client = await make_client(
        _settings(asset_server, tmp_path, background_mode=BackgroundMode.CACHED)
    )

    # Preloaded during startup.
    assert asset_server.hits["bg.png"] == 1

    for _ in range(3):
        response = await client.get("/api/pic", params=_query(avatar_url))
        assert response.status == 200

    assert asset_server.hits["bg.png"] == 1
    assert asset_server.hits["avatar.png"] == 3


@pytest.mark.asyncio
async def test_cached_background_preload_failure(
    asset_server, make_client, tmp_path, avatar_png
) -> None:
    avatar_url = asset_server.add("avatar.png", avatar_png)

    # The service still starts.
    client = await make_client(
        _settings(asset_server, tmp_path, background_mode=BackgroundMode.CACHED)
    )

    for _ in range(2):
        response = await client.get("/api/pic", params=_query(avatar_url))
        body = await response.json()

        assert response.status == 500
        assert body["success"] is False
        assert "background not available" in body["error"].lower()

    # Neither a retry nor an avatar download happens per request.
    assert asset_server.hits["bg.png"] == 1
    assert asset_server.hits["avatar.png"] == 0


@pytest.mark.asyncio
async def test_reload_route_is_disabled_by_default(asset_server, make_client, tmp_path) -> None:
    asset_server.add("bg.png", b"", status=404)

    client = await make_client(
        _settings(asset_server, tmp_path, background_mode=BackgroundMode.CACHED)
    )

    response = await client.post("/api/pic/background")
    assert response.status in (404, 405)


@pytest.mark.asyncio
async def test_reload_recovers_from_failed_preload(
    asset_server, make_client, tmp_path, background_png, avatar_png
) -> None:
    avatar_url = asset_server.add("avatar.png", avatar_png)

    client = await make_client(
        _settings(
            asset_server,
            tmp_path,
            background_mode=BackgroundMode.CACHED,
            allow_background_reload=True,
        )
    )

    response = await client.get("/api/pic", params=_query(avatar_url))
    assert response.status == 500

    response = await client.post("/api/pic/background")
    assert response.status == 500
    assert (await response.json())["success"] is False

    asset_server.add("bg.png", background_png)

    response = await client.post("/api/pic/background")
    assert response.status == 200
    assert await response.json() == {"success": True, "width": 1080, "height": 1920}

    response = await client.get("/api/pic", params=_query(avatar_url))
    assert response.status == 200
