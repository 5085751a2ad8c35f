"""Small helpers for strings, sequences and durations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import timedelta
from typing import Optional, TypeVar

T = TypeVar("T")

_TRUE_WORDS = frozenset({"1", "t", "true"})
_FALSE_WORDS = frozenset({"0", "f", "false"})


def string_contains(array: Iterable[str], needle: str) -> bool:
    """Return True if ``needle`` is one of the strings in ``array``."""
    return any(value == needle for value in array)


def string_to_bool(s: str) -> bool:
    """Convert a string to a boolean, treating anything unrecognised as False.

    Accepted true values are ``1``, ``t`` and ``true`` in any letter case and
    with surrounding whitespace ignored.
    """
    word = s.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return False


def contains(origin: Sequence[T], element: T) -> bool:
    """Return True if ``origin`` holds a value equal to ``element``.

    Equality is structural, so this works for values that are not hashable.
    """
    return any(value == element for value in origin)


def duration_seconds_to_int(d: Optional[timedelta]) -> Optional[int]:
    """Return the whole number of seconds in ``d``, or None when ``d`` is None.

    Fractions of a second are truncated toward zero.
    """
    if d is None:
        return None
    return int(d.total_seconds())