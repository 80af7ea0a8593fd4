"""Pure delta computation between consecutive successful results.

Each domain supplies its own diff function; :func:`compute_delta`
decides whether a comparison is meaningful at all.  Arrays and
histories yield an empty delta because element-wise comparison across
resized collections has no alignment rule.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from chainchirp.core.protocols import DiffFn

T = TypeVar("T")


def is_collection(value: object) -> bool:
    return isinstance(value, (list, tuple))


def compute_delta(
    diff_fn: DiffFn[T],
    previous: T | None,
    current: T,
) -> dict[str, Any]:
    """Return ``diff_fn(previous, current)`` when the pair is comparable.

    The delta is empty when there is no previous value, when either side
    is a list or tuple, or when the two values are of different types.
    """
    if previous is None:
        return {}
    if is_collection(previous) or is_collection(current):
        return {}
    if type(previous) is not type(current):
        return {}
    return diff_fn(previous, current)


def field_delta(
    previous: object,
    current: object,
    fields: Mapping[str, str],
    *,
    ndigits: int | None = None,
) -> dict[str, Any]:
    """Subtract numeric attributes of *previous* from *current*.

    *fields* maps attribute names to output keys, e.g.
    ``{"fastest": "fastestChange"}``.
    """
    delta: dict[str, Any] = {}
    for attr, key in fields.items():
        change = getattr(current, attr) - getattr(previous, attr)
        delta[key] = round(change, ndigits) if ndigits is not None else change
    return delta
