"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "PUBLISHER_KEY",
    "RENDERER_KEY",
    "REQUESTER_KEY",
    "create_app",
)


import logging
import os
from typing import AsyncIterator, Optional

from aiohttp import web

from .assets import AssetFetcher
from .compositor import load_font
from .config import BackgroundMode, OutputMode, Settings
from .errors import ConfigError, FetchError, RenderError
from .http import HTTPRequester, json_response
from .publisher import Publisher, create_publisher
from .service import CardRenderer, RenderRequest

_LOG: logging.Logger = logging.getLogger(__name__)


REQUESTER_KEY = web.AppKey("requester", HTTPRequester)
RENDERER_KEY = web.AppKey("renderer", CardRenderer)
PUBLISHER_KEY = web.AppKey("publisher", Publisher)


async def render_picture(request: web.Request) -> web.Response:
    app = request.app
    publisher = app[PUBLISHER_KEY]

    try:
        render_request = RenderRequest.from_query(request.query)
        data = await app[RENDERER_KEY].render(render_request)
        return await publisher.publish(request, data)
    except RenderError as exc:
        if exc.status >= 500:
            _LOG.warning("Render request failed: %s", exc)

        return publisher.error_response(str(exc), status=exc.status)
    except Exception:
        _LOG.exception("Unhandled exception while handling %s.", request.rel_url)
        return publisher.error_response("Internal server error.", status=500)


async def reload_background(request: web.Request) -> web.Response:
    renderer = request.app[RENDERER_KEY]

    if renderer.background is None:
        raise web.HTTPNotFound()

    try:
        asset = await renderer.background.load(renderer.fetcher)
    except FetchError as exc:
        return json_response({"success": False, "error": str(exc)}, status=500)

    return json_response({"success": True, "width": asset.width, "height": asset.height})


async def _lifecycle(app: web.Application) -> AsyncIterator[None]:
    from sys import version_info as python_version

    from aiohttp import __version__ as aiohttp_version

    from . import __version__

    user_agent = (
        f"avatarcard/{__version__}"
        f" Python/{python_version[0]}.{python_version[1]}"
        f" aiohttp/{aiohttp_version}"
    )

    requester = app[REQUESTER_KEY]
    await requester.start(headers={"User-Agent": user_agent})

    try:
        await app[RENDERER_KEY].preload()
        yield
    finally:
        await requester.close()


def _check_fonts(settings: Settings) -> None:
    profile = settings.profile

    for line in profile.lines:
        try:
            load_font(profile.font_path, line.font_size)
        except OSError as exc:
            raise ConfigError("profile.font_path", f"cannot load font ({exc}).") from exc


def create_app(
    settings: Settings, *, requester: Optional[HTTPRequester] = None
) -> web.Application:
    """Creates the web application.

    Parameters
    ----------
    settings: :class:`.Settings`
        The service settings.
    requester: Optional[:class:`.HTTPRequester`]
        The requester used to download images. Its session is
        started and closed with the application. If ``None``,
        one is built from the settings.

    Raises
    ------
    :exc:`.ConfigError`
        The configured font could not be loaded.
    """
    _check_fonts(settings)

    if requester is None:
        requester = HTTPRequester(
            timeout=settings.fetch_timeout, max_size=settings.max_image_size
        )

    app = web.Application()

    app[REQUESTER_KEY] = requester
    app[RENDERER_KEY] = CardRenderer(settings, AssetFetcher(requester))
    app[PUBLISHER_KEY] = create_publisher(settings)

    app.router.add_get("/api/pic", render_picture)

    if settings.background_mode is BackgroundMode.CACHED and settings.allow_background_reload:
        app.router.add_post("/api/pic/background", reload_background)

    if settings.output_mode is OutputMode.PERSIST:
        # The static route requires the directory to exist up front.
        os.makedirs(settings.output_directory, exist_ok=True)
        app.router.add_static(settings.static_prefix, settings.output_directory)

    app.cleanup_ctx.append(_lifecycle)

    return app
