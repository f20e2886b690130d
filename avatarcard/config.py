"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "BackgroundMode",
    "CENTERED_PROFILE",
    "CORNER_PROFILE",
    "LayoutKind",
    "OutputMode",
    "PROFILES",
    "RenderProfile",
    "Settings",
    "TextLine",
)


import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union

from PIL import ImageColor

from .errors import ConfigError
from .utils import human_join

if TYPE_CHECKING:
    from .service import RenderRequest

    PILColour = Union[str, Tuple[int, ...]]

    _E = TypeVar("_E", bound=Enum)


class LayoutKind(str, Enum):
    CORNER = "corner"
    CENTERED = "centered"


class BackgroundMode(str, Enum):
    PER_REQUEST = "per_request"
    CACHED = "cached"


class OutputMode(str, Enum):
    STREAM = "stream"
    PERSIST = "persist"


@dataclass(frozen=True)
class TextLine:
    """A single line of text drawn onto the card.

    Attributes
    ----------
    template: :class:`str`
        The line's text. ``{rank}``, ``{name}`` and ``{group}``
        are replaced with the corresponding request fields.
    font_size: :class:`int`
        The font size, in pixels.
    spacing: :class:`int`
        The distance from the previous line's baseline to this
        line's baseline. For the first line, this is the distance
        from the text block's origin.
    """

    template: str
    font_size: int
    spacing: int = 0

    def render(self, request: RenderRequest) -> str:
        return self.template.format(
            rank=request.rank, name=request.display_name, group=request.group_label
        )


@dataclass(frozen=True)
class RenderProfile:
    """The layout constants, fonts and colours used to draw a card.

    Attributes
    ----------
    layout: :class:`LayoutKind`
        Whether the avatar sits in the top-right corner with
        left-aligned text, or is centered with centered text.
    avatar_size: :class:`int`
        The side length of the avatar's bounding box.
    avatar_margin: :class:`int`
        The distance from the canvas edge(s) to the avatar.
    text_margin: :class:`int`
        The left margin of the text (corner layout only).
    text_origin: :class:`int`
        For the corner layout, the distance from the bottom of the
        canvas to the text block origin. For the centered layout,
        the distance from the bottom of the avatar to it.
    lines: Tuple[:class:`TextLine`, ...]
        The text lines, drawn in order.
    font_path: Optional[:class:`str`]
        The TrueType/OpenType font file to draw text with.
        ``None`` uses Pillow's bundled default font.
    fill_colour: Union[:class:`str`, Tuple[:class:`int`, ...]]
        The text fill colour.
    stroke_colour: Union[:class:`str`, Tuple[:class:`int`, ...]]
        The text outline colour.
    stroke_width: :class:`int`
        The text outline radius, in pixels.
    """

    layout: LayoutKind
    avatar_size: int
    avatar_margin: int
    text_origin: int
    lines: Tuple[TextLine, ...]
    text_margin: int = 0
    font_path: Optional[str] = None
    fill_colour: PILColour = "white"
    stroke_colour: PILColour = "black"
    stroke_width: int = 3


# fmt: off
CORNER_PROFILE: RenderProfile = RenderProfile(
    layout=LayoutKind.CORNER,
    avatar_size=120,
    avatar_margin=30,
    text_margin=60,
    text_origin=200,
    lines=(
        TextLine("{rank}",              130),
        TextLine("{name}",              48, 70),
        TextLine("Group Chat: {group}", 36, 50),
    ),
)

CENTERED_PROFILE: RenderProfile = RenderProfile(
    layout=LayoutKind.CENTERED,
    avatar_size=300,
    avatar_margin=80,
    text_origin=90,
    lines=(
        TextLine("{name}",                 52),
        TextLine("{group}",                40, 60),
        TextLine("You are member #{rank}", 32, 50),
    ),
)
# fmt: on

PROFILES: Dict[str, RenderProfile] = {
    LayoutKind.CORNER.value: CORNER_PROFILE,
    LayoutKind.CENTERED.value: CENTERED_PROFILE,
}


def _get_enum(
    data: Mapping[str, Any], key: str, enum_cls: Type[_E], default: _E, *, prefix: str = ""
) -> _E:
    value = data.get(key, default)

    try:
        return enum_cls(value)
    except ValueError:
        choices = human_join([repr(e.value) for e in enum_cls], joiner="or")
        raise ConfigError(prefix + key, f"must be {choices}, not {value!r}.") from None


def _get_number(
    data: Mapping[str, Any],
    key: str,
    default: Any,
    *,
    cls: type = int,
    minimum: float = 0,
    prefix: str = "",
) -> Any:
    value = data.get(key, default)

    # bool is a subclass of int, which is never what anyone meant.
    if isinstance(value, bool):
        raise ConfigError(prefix + key, f"expected a number, got {value!r}.")

    try:
        value = cls(value)
    except (TypeError, ValueError):
        raise ConfigError(prefix + key, f"expected a number, got {value!r}.") from None

    if value < minimum:
        raise ConfigError(prefix + key, f"must be >= {minimum}, not {value}.")

    return value


def _get_colour(data: Mapping[str, Any], key: str, default: PILColour) -> PILColour:
    value = data.get(key, default)

    if isinstance(value, list):
        value = tuple(value)

    try:
        if isinstance(value, str):
            ImageColor.getrgb(value)
        elif not isinstance(value, tuple) or len(value) not in (3, 4):
            raise ValueError
        elif not all(
            isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 255 for v in value
        ):
            raise ValueError
    except ValueError:
        raise ConfigError(f"profile.{key}", f"{value!r} is not a colour.") from None

    return value


def _get_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)

    if not isinstance(value, bool):
        raise ConfigError(key, f"expected true or false, got {value!r}.")

    return value


def _parse_line(index: int, data: Any) -> TextLine:
    key = f"profile.lines[{index}]"

    if not isinstance(data, Mapping):
        raise ConfigError(key, "expected a mapping.")

    template = data.get("template")
    if not isinstance(template, str):
        raise ConfigError(f"{key}.template", "expected a string.")

    try:
        template.format(rank="", name="", group="")
    except (KeyError, IndexError, ValueError) as exc:
        raise ConfigError(f"{key}.template", f"bad placeholder {exc}.") from None

    return TextLine(
        template,
        _get_number(data, "font_size", None, minimum=1, prefix=f"{key}."),
        _get_number(data, "spacing", 0, minimum=-(2**31), prefix=f"{key}."),
    )


def _parse_profile(value: Any) -> RenderProfile:
    if value is None:
        return CORNER_PROFILE

    if isinstance(value, str):
        try:
            return PROFILES[value]
        except KeyError:
            choices = human_join([repr(k) for k in PROFILES], joiner="or")
            raise ConfigError("profile", f"must be {choices}, not {value!r}.") from None

    if not isinstance(value, Mapping):
        raise ConfigError("profile", "expected a profile name or a mapping.")

    layout = _get_enum(value, "layout", LayoutKind, LayoutKind.CORNER, prefix="profile.")
    base = PROFILES[layout.value]

    unknown = set(value) - {f.name for f in fields(RenderProfile)}
    if unknown:
        raise ConfigError("profile", f"unknown key(s) {human_join(sorted(unknown))}.")

    overrides: Dict[str, Any] = {"layout": layout}

    for name in ("avatar_size", "avatar_margin", "text_margin", "text_origin", "stroke_width"):
        if name in value:
            minimum = 1 if name == "avatar_size" else 0
            overrides[name] = _get_number(value, name, None, minimum=minimum, prefix="profile.")

    for name in ("fill_colour", "stroke_colour"):
        if name in value:
            overrides[name] = _get_colour(value, name, getattr(base, name))

    if "font_path" in value:
        font_path = value["font_path"]
        if font_path is not None and not isinstance(font_path, str):
            raise ConfigError("profile.font_path", "expected a string.")
        overrides["font_path"] = font_path

    if "lines" in value:
        lines = value["lines"]
        if not isinstance(lines, list) or not lines:
            raise ConfigError("profile.lines", "expected a non-empty list.")
        overrides["lines"] = tuple(_parse_line(i, l) for i, l in enumerate(lines))

    return replace(base, **overrides)


@dataclass(frozen=True)
class Settings:
    """The service configuration.

    This is the single structure every component reads its
    behaviour from. Use :meth:`from_mapping` to build one
    from loaded YAML data.
    """

    host: str = "0.0.0.0"
    port: int = 3000
    background_url: str = "https://i.ibb.co/sdLf3wZF/image.jpg"
    background_mode: BackgroundMode = BackgroundMode.PER_REQUEST
    output_mode: OutputMode = OutputMode.PERSIST
    output_directory: str = "images"
    static_prefix: str = "/images"
    public_url: Optional[str] = None
    fetch_timeout: float = 15.0
    max_image_size: Optional[int] = 40_000_000
    allow_background_reload: bool = False
    profile: RenderProfile = field(default=CORNER_PROFILE)

    @classmethod
    def from_mapping(
        cls, data: Optional[Mapping[str, Any]], *, environ: Optional[Mapping[str, str]] = None
    ) -> Settings:
        """Builds settings from a mapping, applying environment overrides.

        ``PORT``, ``HOST``, ``BACKGROUND_URL`` and ``PUBLIC_URL`` in the
        environment take precedence over the mapping.

        Raises
        ------
        :exc:`.ConfigError`
            A value was invalid.
        """
        if data is None:
            data = {}
        elif not isinstance(data, Mapping):
            raise ConfigError("<root>", "expected a mapping.")

        if environ is None:
            environ = os.environ

        data = dict(data)

        for env_key, key in (
            ("PORT", "port"),
            ("HOST", "host"),
            ("BACKGROUND_URL", "background_url"),
            ("PUBLIC_URL", "public_url"),
        ):
            if environ.get(env_key):
                data[key] = environ[env_key]

        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ConfigError("<root>", f"unknown key(s) {human_join(sorted(unknown))}.")

        default = cls()

        for key in ("host", "background_url", "output_directory", "static_prefix"):
            if key in data and (not isinstance(data[key], str) or not data[key]):
                raise ConfigError(key, "expected a non-empty string.")

        static_prefix = data.get("static_prefix", default.static_prefix).strip("/")
        if not static_prefix:
            raise ConfigError("static_prefix", "cannot be the root path.")

        static_prefix = f"/{static_prefix}"

        public_url = data.get("public_url")
        if public_url is not None:
            if not isinstance(public_url, str):
                raise ConfigError("public_url", "expected a string.")
            public_url = public_url.rstrip("/")

        max_image_size = data.get("max_image_size", default.max_image_size)
        if max_image_size is not None:
            max_image_size = _get_number(data, "max_image_size", max_image_size, minimum=1)

        return cls(
            host=data.get("host", default.host),
            port=_get_number(data, "port", default.port, minimum=0),
            background_url=data.get("background_url", default.background_url),
            background_mode=_get_enum(
                data, "background_mode", BackgroundMode, default.background_mode
            ),
            output_mode=_get_enum(data, "output_mode", OutputMode, default.output_mode),
            output_directory=data.get("output_directory", default.output_directory),
            static_prefix=static_prefix,
            public_url=public_url,
            fetch_timeout=_get_number(
                data, "fetch_timeout", default.fetch_timeout, cls=float, minimum=0.001
            ),
            max_image_size=max_image_size,
            allow_background_reload=_get_bool(
                data, "allow_background_reload", default.allow_background_reload
            ),
            profile=_parse_profile(data.get("profile")),
        )
