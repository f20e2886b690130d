"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "HTTPRequester",
    "HTTPRequestFailed",
    "ResponseTooLarge",
    "json_response",
)


import logging
from typing import TYPE_CHECKING, Any, Optional, Tuple, Union

import aiohttp
from aiohttp import web

if TYPE_CHECKING:
    from multidict import CIMultiDictProxy
    from yarl import URL

    RequestUrl = Union[str, URL]


try:
    import orjson
except ModuleNotFoundError:
    import json

    def _to_json(obj: Any) -> str:
        return json.dumps(obj, separators=(",", ":"))

else:

    def _to_json(obj: Any) -> str:
        return orjson.dumps(obj).decode("utf-8")


_LOG: logging.Logger = logging.getLogger(__name__)

_MISSING: Any = object()


class HTTPRequestFailed(Exception):
    """Exception raised when an HTTP request fails.

    Attributes
    ----------
    status: :class:`int`
        The HTTP status code.
    reason: :class:`str`
        The HTTP status reason.
    headers: multidict.CIMultiDictProxy[:class:`str`]
        The response headers.
    """

    def __init__(self, response: aiohttp.ClientResponse) -> None:
        self.status: int = response.status
        self.reason: str = response.reason  # type: ignore
        self.headers: CIMultiDictProxy[str] = response.headers

        fmt = "{0.method} {0.url} failed with HTTP status {0.status} {0.reason}."
        super().__init__(fmt.format(response))


class ResponseTooLarge(Exception):
    """Exception raised when a response body exceeds the allowed size.

    Attributes
    ----------
    max_size: :class:`int`
        The maximum body size, in bytes.
    """

    def __init__(self, url: RequestUrl, max_size: int) -> None:
        self.max_size: int = max_size

        super().__init__(f"Response from {url} exceeds {max_size:,d} B in size.")


class HTTPRequester:
    """An HTTP client that reads response bodies as raw bytes.

    Sessions are not implicitly started during construction.
    :meth:`start` must be explicitly called with `await`.

    Parameters
    ----------
    timeout: :class:`float`
        The total number of seconds a single request may take,
        including connecting and reading the body. Defaults to
        ``15``.
    max_size: Optional[:class:`int`]
        The maximum acceptable body size in bytes. ``None``
        disables size checking. Defaults to `40_000_000` (40 MB).
    """

    __slots__: Tuple[str, ...] = ("_timeout", "_max_size", "__session")

    def __init__(
        self, *, timeout: float = 15, max_size: Optional[int] = 40_000_000
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"invalid timeout {timeout} (must be > 0).")

        if max_size is not None and max_size <= 0:
            raise ValueError(f"invalid max_size {max_size} (must be > 0).")

        self._timeout: float = timeout
        self._max_size: Optional[int] = max_size
        self.__session: aiohttp.ClientSession = _MISSING

    @property
    def timeout(self) -> float:
        """:class:`float`: The total number of seconds a request may take."""
        return self._timeout

    def is_closed(self) -> bool:
        """:class:`bool`: Indicates whether the underlying HTTP client session is closed."""
        return self.__session is _MISSING or self.__session.closed

    async def start(self, **session_kwargs: Any) -> None:
        """|coro|

        Starts this HTTP requester session.

        Parameters
        ----------
        session_kwargs
            The remaining parameters to be passed to the
            :class:`aiohttp.ClientSession` constructor.

        Raises
        ------
        RuntimeError
            This HTTP requester session is already active.
        """
        if not self.is_closed():
            raise RuntimeError("HTTP requester session is active.")

        session_kwargs.setdefault("timeout", aiohttp.ClientTimeout(total=self._timeout))

        self.__session = aiohttp.ClientSession(**session_kwargs)

        _LOG.info("New HTTP requester session started.")

    async def close(self) -> None:
        """|coro|

        Closes this HTTP requester session.
        """
        if self.is_closed():
            return

        await self.__session.close()
        self.__session = _MISSING

        _LOG.info("Closed HTTP requester session.")

    async def get_bytes(self, url: RequestUrl, /, **kwargs: Any) -> bytes:
        """|coro|

        Performs a GET request and returns the body as raw bytes,
        regardless of the reported content type.

        Parameters
        ----------
        url: Union[:class:`str`, :class:`yarl.URL`]
            The URL to make a request to.
        kwargs:
            The remaining parameters to be passed into the
            :meth:`aiohttp.ClientSession.get` method.

        Returns
        -------
        :class:`bytes`
            The raw response body.

        Raises
        ------
        :exc:`.HTTPRequestFailed`
            The request returned a non-2xx status code.
        :exc:`.ResponseTooLarge`
            The response body exceeded the maximum size.
        :exc:`aiohttp.ClientError`
            The request could not be completed.
        :exc:`asyncio.TimeoutError`
            The request took longer than :attr:`timeout`.
        RuntimeError
            The underlying HTTP client session was closed when trying
            to fetch data.
        """
        if self.is_closed():
            raise RuntimeError("HTTP requester session is closed.")

        async with self.__session.get(url, **kwargs) as resp:
            # aiohttp takes care of HTTP 1xx and 3xx internally, so
            # it's probably safe to exclude these from the range of
            # successful status codes.
            if not 200 <= resp.status < 300:
                _LOG.warning("GET %s failed with HTTP status %s.", url, resp.status)
                raise HTTPRequestFailed(resp)

            max_size = self._max_size

            if max_size is None:
                data = await resp.read()
            else:
                # Content-Length can be absent or lie, so the body
                # itself is also read with a hard upper bound.
                length = resp.content_length
                if length is not None and length > max_size:
                    raise ResponseTooLarge(url, max_size)

                buffer = bytearray()

                async for chunk in resp.content.iter_chunked(65_536):
                    buffer += chunk

                    if len(buffer) > max_size:
                        raise ResponseTooLarge(url, max_size)

                data = bytes(buffer)

            _LOG.info("GET %s succeeded with HTTP status %s.", url, resp.status)
            return data


def json_response(data: Any, *, status: int = 200) -> web.Response:
    """Creates a JSON :class:`aiohttp.web.Response`.

    This serializes with `orjson` if it is installed.
    """
    return web.json_response(data, status=status, dumps=_to_json)
