"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "compose_card",
    "load_font",
)


import io
from functools import lru_cache
from typing import TYPE_CHECKING, Optional, Sequence, Union

from PIL import Image, ImageChops, ImageDraw, ImageFont

from .errors import CompositionError
from .layout import compute_layout
from .utils import measure_performance

if TYPE_CHECKING:
    from .assets import ImageAsset
    from .config import RenderProfile
    from .layout import AvatarBox

    Font = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


@lru_cache(maxsize=32)
def load_font(path: Optional[str], size: int) -> Font:
    """Loads a font face at the given size.

    ``None`` loads Pillow's bundled default font. Loaded fonts are
    cached, so this is cheap to call per request.

    Raises
    ------
    OSError
        The font file could not be read.
    """
    if path is None:
        return ImageFont.load_default(size)

    return ImageFont.truetype(path, size)


def _paste_avatar(canvas: Image.Image, avatar: Image.Image, box: AvatarBox) -> None:
    size = (box.size, box.size)

    # Force-fit to the square box; the aspect ratio isn't kept.
    avatar = avatar.resize(size)

    mask = Image.new("L", size)
    ImageDraw.Draw(mask).ellipse((0, 0, *size), 255)

    # The clip only exists as this paste's mask, so it cannot
    # affect anything drawn afterwards.
    canvas.paste(avatar, box.bounds, ImageChops.multiply(avatar.getchannel("A"), mask))


@measure_performance
def compose_card(
    background: ImageAsset,
    avatar: ImageAsset,
    texts: Sequence[str],
    profile: RenderProfile,
) -> bytes:
    """Draws the avatar and text onto a copy of the background.

    Parameters
    ----------
    background: :class:`.ImageAsset`
        The background. Its size is the output size.
    avatar: :class:`.ImageAsset`
        The avatar, clipped into a circle.
    texts: Sequence[:class:`str`]
        The already formatted text of each of the profile's lines.
    profile: :class:`.RenderProfile`
        The layout, fonts and colours to use.

    Returns
    -------
    Tuple[:class:`bytes`, :class:`float`]
        The PNG-encoded image and the time taken in milliseconds.

    Raises
    ------
    :exc:`.CompositionError`
        The image could not be drawn or encoded.
    """
    width, height = background.size

    if width == 0 or height == 0:
        raise CompositionError(f"Cannot draw onto a {width}x{height} background.")

    try:
        canvas = background.image.copy()
        draw = ImageDraw.Draw(canvas)

        fonts = [load_font(profile.font_path, line.font_size) for line in profile.lines]
        widths = [draw.textlength(t, f) for t, f in zip(texts, fonts)]

        layout = compute_layout(width, height, widths, profile)

        _paste_avatar(canvas, avatar.image, layout.avatar)

        for text, font, placement in zip(texts, fonts, layout.text):
            xy = (placement.x, placement.baseline)

            # The outline goes down first so the fill sits on top of it.
            if profile.stroke_width > 0:
                draw.text(
                    xy,
                    text,
                    profile.stroke_colour,
                    font,
                    anchor="ls",
                    stroke_width=profile.stroke_width,
                    stroke_fill=profile.stroke_colour,
                )

            draw.text(xy, text, profile.fill_colour, font, anchor="ls")

        buffer = io.BytesIO()
        canvas.save(buffer, "png")
    except (OSError, TypeError, ValueError) as exc:
        raise CompositionError(f"Failed to compose image: {exc}") from exc

    return buffer.getvalue()
