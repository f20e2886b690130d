"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "CardRenderer",
    "REQUIRED_PARAMETERS",
    "RenderRequest",
)


import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Optional, Tuple

from .assets import CachedBackground
from .compositor import compose_card
from .config import BackgroundMode
from .errors import FetchError, ValidationError
from .utils import human_join, truncate

if TYPE_CHECKING:
    from .assets import AssetFetcher, ImageAsset
    from .config import Settings


_LOG: logging.Logger = logging.getLogger(__name__)


REQUIRED_PARAMETERS: Tuple[str, ...] = ("url", "num", "name", "gcname")


@dataclass(frozen=True)
class RenderRequest:
    avatar_url: str
    rank: str
    display_name: str
    group_label: str

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> RenderRequest:
        """Builds a request from the ``url``, ``num``, ``name`` and
        ``gcname`` query parameters.

        Raises
        ------
        :exc:`.ValidationError`
            A parameter was missing or empty.
        """
        for param in REQUIRED_PARAMETERS:
            if not query.get(param):
                names = human_join([f"'{p}'" for p in REQUIRED_PARAMETERS], joiner="or")
                raise ValidationError(param, f"Missing {names}.")

        return cls(query["url"], query["num"], query["name"], query["gcname"])


class CardRenderer:
    """Fetches the assets for a request and composes the card.

    Parameters
    ----------
    settings: :class:`.Settings`
        The service settings.
    fetcher: :class:`.AssetFetcher`
        The fetcher used to download images.
    """

    __slots__: Tuple[str, ...] = ("settings", "fetcher", "background")

    def __init__(self, settings: Settings, fetcher: AssetFetcher) -> None:
        self.settings: Settings = settings
        self.fetcher: AssetFetcher = fetcher

        self.background: Optional[CachedBackground] = None

        if settings.background_mode is BackgroundMode.CACHED:
            self.background = CachedBackground(settings.background_url)

    async def preload(self) -> bool:
        """|coro|

        Loads the cached background, if caching is enabled.

        Failures are logged rather than raised, so the service can
        still start. Renders then fail until this succeeds.

        Returns
        -------
        :class:`bool`
            Whether a background is available afterwards.
        """
        if self.background is None:
            return True

        try:
            await self.background.load(self.fetcher)
        except FetchError:
            _LOG.warning("Continuing without a background; renders will fail.")

        return self.background.is_loaded()

    async def load_assets(self, request: RenderRequest) -> Tuple[ImageAsset, ImageAsset]:
        """|coro|

        Returns the background and the avatar for a request.

        Raises
        ------
        :exc:`.FetchError`
            Either image could not be fetched, or the cached
            background is not available.
        """
        if self.background is not None:
            background = self.background.get()
            return background, await self.fetcher.fetch(request.avatar_url)

        background, avatar = await self.fetcher.fetch_all(
            self.settings.background_url, request.avatar_url
        )

        return background, avatar

    async def render(self, request: RenderRequest) -> bytes:
        """|coro|

        Renders the card for a request.

        Returns
        -------
        :class:`bytes`
            The PNG-encoded card.

        Raises
        ------
        :exc:`.FetchError`
            An image could not be fetched.
        :exc:`.CompositionError`
            The card could not be drawn.
        """
        background, avatar = await self.load_assets(request)

        profile = self.settings.profile
        texts = [line.render(request) for line in profile.lines]

        data, delta = compose_card(background, avatar, texts, profile)

        _LOG.info(
            "Rendered %dx%d card for %r in %.2f ms.",
            background.width,
            background.height,
            truncate(request.display_name, 32),
            delta,
        )

        return data
