"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "BackgroundUnavailable",
    "CompositionError",
    "ConfigError",
    "FetchError",
    "PersistError",
    "RenderError",
    "ValidationError",
)


from typing import ClassVar, Optional


class ConfigError(ValueError):
    """Exception raised when a configuration value is invalid.

    This inherits from :exc:`ValueError`.

    Attributes
    ----------
    key: :class:`str`
        The dotted name of the offending configuration key.
    """

    def __init__(self, key: str, message: str) -> None:
        self.key: str = key

        super().__init__(f"Invalid config value for '{key}': {message}")


class RenderError(Exception):
    """The base exception for failures while serving a render request.

    Attributes
    ----------
    status: :class:`int`
        The HTTP status code the failure should be reported with.
    """

    status: ClassVar[int] = 500


class ValidationError(RenderError):
    """Exception raised when a required request field is absent.

    This inherits from :exc:`RenderError`.

    Attributes
    ----------
    field: :class:`str`
        The name of the missing field.
    """

    status: ClassVar[int] = 400

    def __init__(self, field: str, message: Optional[str] = None) -> None:
        self.field: str = field

        super().__init__(message or f"Missing required parameter '{field}'.")


class FetchError(RenderError):
    """Exception raised when a remote image could not be fetched or decoded.

    This inherits from :exc:`RenderError`.

    Attributes
    ----------
    url: :class:`str`
        The URL of the image that failed.
    """

    def __init__(self, url: str, cause: str) -> None:
        self.url: str = url

        super().__init__(f"Failed to fetch image {url}: {cause}")


class BackgroundUnavailable(FetchError):
    """Exception raised when the cached background image has not been
    successfully loaded.

    This inherits from :exc:`FetchError`.
    """

    def __init__(self, url: str, cause: Optional[str] = None) -> None:
        self.url: str = url

        msg = "Background not available"
        if cause is not None:
            msg += f" (preload of {url} failed: {cause})"

        RenderError.__init__(self, f"{msg}.")


class CompositionError(RenderError):
    """Exception raised when drawing or encoding the image fails.

    This inherits from :exc:`RenderError`.
    """


class PersistError(RenderError):
    """Exception raised when the rendered image could not be saved.

    This inherits from :exc:`RenderError`.

    Attributes
    ----------
    path: :class:`str`
        The path that was being written to.
    """

    def __init__(self, path: str) -> None:
        self.path: str = path

        super().__init__("Failed to save image.")
