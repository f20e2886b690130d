"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


import asyncio
import io
from collections import Counter
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
from PIL import Image

from avatarcard.config import Settings
from avatarcard.server import create_app


def make_image_bytes(
    size: Tuple[int, int], colour: Tuple[int, ...] = (255, 255, 255), fmt: str = "png"
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, colour).save(buffer, fmt)
    return buffer.getvalue()


class AssetServer:
    """Serves canned responses and records which paths were requested."""

    def __init__(self) -> None:
        self.routes: Dict[str, Tuple[int, bytes, str]] = {}
        self.delays: Dict[str, float] = {}
        self.hits: Counter = Counter()

        # Paths that only respond once all of them were requested.
        self.barrier: Dict[str, asyncio.Event] = {}
        self._arrived: List[str] = []

        app = web.Application()
        app.router.add_get("/{path:.*}", self._handle)
        self.server: TestServer = TestServer(app)

    def add(
        self,
        path: str,
        body: bytes,
        *,
        content_type: str = "image/png",
        status: int = 200,
        delay: Optional[float] = None,
    ) -> str:
        self.routes[path] = (status, body, content_type)

        if delay is not None:
            self.delays[path] = delay

        return self.url(path)

    def add_barrier(self, *paths: str) -> None:
        event = asyncio.Event()

        for path in paths:
            self.barrier[path] = event

    def url(self, path: str) -> str:
        return str(self.server.make_url(f"/{path}"))

    async def _handle(self, request: web.Request) -> web.Response:
        path = request.match_info["path"]
        self.hits[path] += 1

        if path in self.barrier:
            event = self.barrier[path]
            self._arrived.append(path)

            if all(p in self._arrived for p, e in self.barrier.items() if e is event):
                event.set()

            try:
                await asyncio.wait_for(event.wait(), 2)
            except asyncio.TimeoutError:
                return web.Response(status=504, text="requests were not concurrent")

        if path in self.delays:
            await asyncio.sleep(self.delays[path])

        try:
            status, body, content_type = self.routes[path]
        except KeyError:
            return web.Response(status=404, text="not found")

        return web.Response(status=status, body=body, content_type=content_type)


@pytest_asyncio.fixture
async def asset_server() -> AsyncIterator[AssetServer]:
    server = AssetServer()
    await server.server.start_server()

    try:
        yield server
    finally:
        await server.server.close()


@pytest.fixture
def background_png() -> bytes:
    return make_image_bytes((1080, 1920), (30, 60, 90))


@pytest.fixture
def avatar_png() -> bytes:
    return make_image_bytes((256, 256), (200, 40, 40))


@pytest_asyncio.fixture
async def make_client() -> AsyncIterator[Callable[[Settings], Awaitable[TestClient]]]:
    clients: List[TestClient] = []

    async def factory(settings: Settings) -> TestClient:
        client = TestClient(TestServer(create_app(settings)))
        await client.start_server()
        clients.append(client)
        return client

    try:
        yield factory
    finally:
        for client in clients:
            await client.close()
