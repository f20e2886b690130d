"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "AssetFetcher",
    "CachedBackground",
    "ImageAsset",
    "decode_image",
)


import asyncio
import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple

import aiohttp
import yarl
from PIL import Image
from PIL.Image import DecompressionBombError

from .errors import BackgroundUnavailable, FetchError
from .http import HTTPRequestFailed, ResponseTooLarge
from .utils import truncate

if TYPE_CHECKING:
    from .http import HTTPRequester


_LOG: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageAsset:
    """A decoded RGBA bitmap.

    Assets are never drawn onto; anything that needs to modify
    the pixels must work on a copy of :attr:`image`.
    """

    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


def decode_image(data: bytes, url: str) -> ImageAsset:
    """Decodes raw image bytes into an :class:`ImageAsset`.

    Only the first frame of animated images is kept.

    Raises
    ------
    :exc:`.FetchError`
        The data was empty or not a decodable image.
    """
    if not data:
        raise FetchError(url, "empty response body.")

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.seek(0)
            decoded = image.convert("RGBA")
    except DecompressionBombError:
        raise FetchError(url, "image dimensions are too large.") from None
    except (OSError, SyntaxError, ValueError) as exc:
        # UnidentifiedImageError is an OSError, as are truncated reads.
        raise FetchError(url, f"not a readable image ({exc}).") from exc

    return ImageAsset(decoded)


def _check_url(url: str) -> None:
    try:
        parsed = yarl.URL(url)
    except (TypeError, ValueError):
        raise FetchError(url, "malformed URL.") from None

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise FetchError(url, "malformed URL.")


class AssetFetcher:
    """Fetches and decodes remote images.

    Parameters
    ----------
    requester: :class:`.HTTPRequester`
        The requester used to download the image bytes.
    """

    __slots__: Tuple[str, ...] = ("_requester",)

    def __init__(self, requester: HTTPRequester) -> None:
        self._requester: HTTPRequester = requester

    async def fetch(self, url: str) -> ImageAsset:
        """|coro|

        Downloads and decodes a single image.

        Raises
        ------
        :exc:`.FetchError`
            The URL was malformed, the request failed, timed out,
            or the body was not an image.
        """
        _check_url(url)

        try:
            data = await self._requester.get_bytes(url)
        except HTTPRequestFailed as exc:
            raise FetchError(url, f"HTTP status {exc.status} {exc.reason}.") from exc
        except ResponseTooLarge as exc:
            raise FetchError(url, str(exc)) from exc
        except asyncio.TimeoutError as exc:
            timeout = self._requester.timeout
            raise FetchError(url, f"timed out after {timeout:g} seconds.") from exc
        except aiohttp.ClientError as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc

        return decode_image(data, url)

    async def fetch_all(self, *urls: str) -> Tuple[ImageAsset, ...]:
        """|coro|

        Fetches several images concurrently.

        Every download runs to completion before this returns,
        even if another one fails.

        Raises
        ------
        :exc:`.FetchError`
            The first (in argument order) failed fetch.
        """
        results = await asyncio.gather(*map(self.fetch, urls), return_exceptions=True)

        for result in results:
            if isinstance(result, BaseException):
                raise result

        return tuple(results)  # type: ignore


@dataclass(frozen=True)
class _LoadResult:
    asset: Optional[ImageAsset] = None
    error: Optional[str] = None


class CachedBackground:
    """A background image fetched once and shared by every request.

    Nothing is fetched until :meth:`load` is awaited. After that,
    the asset is read-only.

    Parameters
    ----------
    url: :class:`str`
        The background image URL.
    """

    __slots__: Tuple[str, ...] = ("url", "_result")

    def __init__(self, url: str) -> None:
        self.url: str = url
        self._result: Optional[_LoadResult] = None

    def is_loaded(self) -> bool:
        """:class:`bool`: Indicates whether a background is available."""
        return self._result is not None and self._result.asset is not None

    async def load(self, fetcher: AssetFetcher) -> ImageAsset:
        """|coro|

        Fetches and decodes the background.

        If a background was already loaded, it is kept when this
        fails.

        Raises
        ------
        :exc:`.FetchError`
            The background could not be fetched.
        """
        try:
            asset = await fetcher.fetch(self.url)
        except FetchError as exc:
            _LOG.error("Failed to load background image: %s", exc)

            if not self.is_loaded():
                self._result = _LoadResult(error=str(exc))

            raise

        self._result = _LoadResult(asset=asset)

        _LOG.info(
            "Loaded background image %s (%dx%d).",
            truncate(self.url, 80),
            asset.width,
            asset.height,
        )

        return asset

    def get(self) -> ImageAsset:
        """Returns the loaded background.

        Raises
        ------
        :exc:`.BackgroundUnavailable`
            The background was never loaded, or loading it failed.
        """
        result = self._result

        if result is None:
            raise BackgroundUnavailable(self.url)

        if result.asset is None:
            raise BackgroundUnavailable(self.url, result.error)

        return result.asset
