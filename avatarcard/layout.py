"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "AvatarBox",
    "LayoutSpec",
    "TextPlacement",
    "compute_avatar_box",
    "compute_layout",
)


from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence, Tuple

from .config import LayoutKind

if TYPE_CHECKING:
    from .config import RenderProfile


@dataclass(frozen=True)
class AvatarBox:
    x: int
    y: int
    size: int

    @property
    def bounds(self) -> Tuple[int, int, int, int]:
        """Tuple[:class:`int`, ...]: The ``(left, top, right, bottom)`` bounds."""
        return self.x, self.y, self.x + self.size, self.y + self.size


@dataclass(frozen=True)
class TextPlacement:
    # Left edge of the text and its (alphabetic) baseline.
    x: float
    baseline: float


@dataclass(frozen=True)
class LayoutSpec:
    avatar: AvatarBox
    text: Tuple[TextPlacement, ...]


def compute_avatar_box(width: int, height: int, profile: RenderProfile) -> AvatarBox:
    """Computes where the avatar is drawn.

    This only depends on the canvas size and the profile's avatar
    geometry, so the avatar never moves when the text changes.
    """
    size = profile.avatar_size
    margin = profile.avatar_margin

    if profile.layout is LayoutKind.CENTERED:
        return AvatarBox((width - size) // 2, margin, size)

    return AvatarBox(width - size - margin, margin, size)


def compute_layout(
    width: int, height: int, text_widths: Sequence[float], profile: RenderProfile
) -> LayoutSpec:
    """Computes the avatar box and the text placements for a canvas.

    Parameters
    ----------
    width: :class:`int`
        The canvas width.
    height: :class:`int`
        The canvas height.
    text_widths: Sequence[:class:`float`]
        The measured rendered width of each of the profile's
        text lines, in order.
    profile: :class:`.RenderProfile`
        The profile holding the layout constants.

    Returns
    -------
    :class:`LayoutSpec`
        The computed layout.

    Raises
    ------
    ValueError
        The number of widths does not match the profile's lines.
    """
    lines = profile.lines

    if len(text_widths) != len(lines):
        raise ValueError(f"expected {len(lines)} text widths, got {len(text_widths)}.")

    avatar = compute_avatar_box(width, height, profile)
    centered = profile.layout is LayoutKind.CENTERED

    if centered:
        baseline = avatar.y + avatar.size + profile.text_origin
    else:
        baseline = height - profile.text_origin

    placements = []

    for line, text_width in zip(lines, text_widths):
        baseline += line.spacing

        x = (width - text_width) / 2 if centered else profile.text_margin
        placements.append(TextPlacement(x, baseline))

    return LayoutSpec(avatar, tuple(placements))
