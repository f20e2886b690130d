"""
Copyright (c) 2018-present HitchedSyringe

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""


from __future__ import annotations

__all__ = (
    "human_join",
    "measure_performance",
    "truncate",
)


import time
from inspect import iscoroutinefunction
from functools import wraps
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Sequence,
    Tuple,
    TypeVar,
    Union,
    cast,
    overload,
)

if TYPE_CHECKING:
    from typing_extensions import ParamSpec

    _R = TypeVar("_R")
    _P = ParamSpec("_P")

    AsyncFunc = Callable[_P, Awaitable[_R]]


def human_join(sequence: Sequence[Any], /, *, joiner: str = "and") -> str:
    """Returns a human-readable, comma-separted sequence, with
    the last element joined with a given joiner.

    This uses an Oxford comma, because without one, the output
    would be difficult to interpret.

    Parameters
    ----------
    sequence: Sequence[Any]
        The sequence of items to join.
    joiner: :class:`str`
        The string that joins the last item with the rest
        of the sequence.
        Defaults to ``"and"``.

    Returns
    -------
    :class:`str`
        The human-readable list.
    """
    if not sequence:
        return ""

    sequence_size = len(sequence)

    if sequence_size == 1:
        return str(sequence[0])

    if sequence_size == 2:
        return f"{sequence[0]} {joiner} {sequence[1]}"

    return ", ".join(map(str, sequence[:-1])) + f", {joiner} {sequence[-1]}"


@overload
def measure_performance(func: AsyncFunc[_P, _R]) -> AsyncFunc[_P, Tuple[_R, float]]:
    ...


@overload
def measure_performance(func: Callable[_P, _R]) -> Callable[_P, Tuple[_R, float]]:
    ...


def measure_performance(
    func: Union[Callable[_P, _R], AsyncFunc[_P, _R]]
) -> Union[Callable[_P, Tuple[_R, float]], AsyncFunc[_P, Tuple[_R, float]]]:
    """A decorator that returns a function or coroutine's
    execution time in milliseconds.

    Example
    -------
    .. code-block:: python3

        @measure_performance
        def foo():
            ...

        # later...

        result, delta = foo()


        # with a coroutine:

        @measure_performance
        async def foo():
            ...

        # later...

        result, delta = await foo()
    """
    if iscoroutinefunction(func):

        @wraps(func)
        async def async_deco(*args: _P.args, **kwargs: _P.kwargs) -> Tuple[_R, float]:
            start = time.perf_counter()
            result = await func(*args, **kwargs)
            return result, (time.perf_counter() - start) * 1000

        return async_deco
    else:
        func = cast("Callable[_P, _R]", func)

        @wraps(func)
        def deco(*args: _P.args, **kwargs: _P.kwargs) -> Tuple[_R, float]:
            start = time.perf_counter()
            result = func(*args, **kwargs)
            return result, (time.perf_counter() - start) * 1000

        return deco


def truncate(text: str, width: int, *, placeholder: str = "...") -> str:
    """Truncates a long string to the given width.

    If the string does not exceed the given ``width``, then the string
    is returned as-is. Otherwise, enough characters are truncated such
    that both the output text and the given ``placeholder`` value fits
    within the given ``width``.

    Parameters
    ----------
    text: :class:`str`
        The string to truncate.
    width: :class:`int`
        The maximum length of the string.
    placeholder: :class:`str`
        String that will appear at the end of the truncated output text.
        The length of this must be less than the given ``width`` value.
        Defaults to ``"..."``.

    Returns
    -------
    :class:`str`
        The truncated string.

    Raises
    ------
    ValueError
        Either an invalid ``width`` value was given, or the given
        placeholder is too long for the given ``width`` value.
    """
    if width <= 0:
        raise ValueError(f"invalid width {width} (must be > 0)")

    placeholder_length = len(placeholder)

    if placeholder_length > width:
        raise ValueError("placeholder is too large for maximum width.")

    if len(text) <= width:
        return text

    return text[: width - placeholder_length].rstrip() + placeholder
