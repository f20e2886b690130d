"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "PersistPublisher",
    "Publisher",
    "StoredArtifact",
    "StreamPublisher",
    "create_publisher",
    "generate_file_name",
)


import logging
import os
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

import aiofiles
import aiofiles.os
from aiohttp import web

from .config import OutputMode
from .errors import PersistError
from .http import json_response

if TYPE_CHECKING:
    from .config import Settings


_LOG: logging.Logger = logging.getLogger(__name__)


def generate_file_name() -> str:
    """Returns a random 128-bit, hex-encoded PNG file name."""
    return f"{secrets.token_hex(16)}.png"


@dataclass(frozen=True)
class StoredArtifact:
    file_name: str
    path: str
    url: str


class Publisher:
    """The base class for delivering rendered images to the client."""

    __slots__: Tuple[str, ...] = ()

    def error_response(self, message: str, *, status: int) -> web.Response:
        return json_response({"success": False, "error": message}, status=status)

    async def publish(self, request: web.Request, data: bytes) -> web.Response:
        raise NotImplementedError


class StreamPublisher(Publisher):
    """Sends the PNG bytes as the response body. Nothing is kept."""

    __slots__: Tuple[str, ...] = ()

    def error_response(self, message: str, *, status: int) -> web.Response:
        payload: Dict[str, Any] = {"error": message}

        if status >= 500:
            payload = {"success": False, **payload}

        return json_response(payload, status=status)

    async def publish(self, request: web.Request, data: bytes) -> web.Response:
        return web.Response(body=data, content_type="image/png")


class PersistPublisher(Publisher):
    """Saves the PNG to a public directory and responds with its URL.

    Parameters
    ----------
    directory: :class:`str`
        The directory the images are written to. This is
        created on first use if it does not exist.
    static_prefix: :class:`str`
        The route prefix the directory is served under.
    public_url: Optional[:class:`str`]
        The scheme and host to build URLs with. If ``None``,
        those of the incoming request are used.
    """

    __slots__: Tuple[str, ...] = ("directory", "static_prefix", "public_url")

    def __init__(
        self, directory: str, *, static_prefix: str, public_url: Optional[str] = None
    ) -> None:
        self.directory: str = directory
        self.static_prefix: str = static_prefix
        self.public_url: Optional[str] = public_url

    def url_for(self, request: web.Request, file_name: str) -> str:
        base = self.public_url or f"{request.scheme}://{request.host}"
        return f"{base}{self.static_prefix}/{file_name}"

    async def save(self, data: bytes) -> Tuple[str, str]:
        """|coro|

        Writes the image to a newly named file.

        Returns
        -------
        Tuple[:class:`str`, :class:`str`]
            The file name and the full path.

        Raises
        ------
        :exc:`.PersistError`
            The directory could not be created or the file
            could not be written.
        """
        file_name = generate_file_name()
        path = os.path.join(self.directory, file_name)

        try:
            await aiofiles.os.makedirs(self.directory, exist_ok=True)
        except OSError as exc:
            _LOG.error("Failed to create output directory %s: %s", self.directory, exc)
            raise PersistError(self.directory) from exc

        try:
            # Exclusive mode so an existing image is never overwritten.
            async with aiofiles.open(path, "xb") as f:
                await f.write(data)
        except FileExistsError as exc:
            _LOG.error("Refusing to overwrite existing image %s.", path)
            raise PersistError(path) from exc
        except OSError as exc:
            _LOG.error("Failed to write image %s: %s", path, exc)

            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                pass
            except OSError:
                _LOG.warning("Failed to remove partially written image %s.", path)

            raise PersistError(path) from exc

        _LOG.info("Saved image %s (%d bytes).", path, len(data))
        return file_name, path

    async def store(self, request: web.Request, data: bytes) -> StoredArtifact:
        file_name, path = await self.save(data)
        return StoredArtifact(file_name, path, self.url_for(request, file_name))

    async def publish(self, request: web.Request, data: bytes) -> web.Response:
        artifact = await self.store(request, data)
        return json_response({"success": True, "url": artifact.url})


def create_publisher(settings: Settings) -> Publisher:
    if settings.output_mode is OutputMode.STREAM:
        return StreamPublisher()

    return PersistPublisher(
        settings.output_directory,
        static_prefix=settings.static_prefix,
        public_url=settings.public_url,
    )
