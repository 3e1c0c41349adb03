"""Materialized drawables and the paint-order comparator."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import cmp_to_key
from types import MappingProxyType
from typing import TypeAlias

from .config import RGBColor
from .sources import Geometry


__all__ = [
    "Feature",
    "OrderKeyMap",
    "compare_order",
    "sort_features",
]

OrderKeyMap: TypeAlias = Mapping[str, float]


@dataclass(frozen=True)
class Feature:
    """A line with its style resolved, ready to draw.

    ``geometry`` is shared with the originating record and never copied.
    ``source`` and ``index`` identify where the feature came from.
    """

    geometry: Geometry
    color: RGBColor
    width: float
    order: OrderKeyMap = field(default_factory=lambda: MappingProxyType({}))
    source: str = ""
    index: int = -1

    def __post_init__(self) -> None:
        # Copy even read-only views; they still track the caller's dict
        object.__setattr__(self, "order", MappingProxyType(dict(self.order)))


def compare_order(a: OrderKeyMap, b: OrderKeyMap, dimensions: Sequence[str]) -> int:
    """Compare two order keys lexicographically over ``dimensions``.

    A dimension missing from a key counts as 0. Earlier dimensions dominate
    later ones, so coarse dimensions (layer) must come before fine ones
    (casing_core).

    Returns:
        -1, 0 or 1.
    """
    for dimension in dimensions:
        a_value = a.get(dimension, 0)
        b_value = b.get(dimension, 0)
        if a_value != b_value:
            return -1 if a_value < b_value else 1
    return 0


def sort_features(features: Iterable[Feature], dimensions: Sequence[str]) -> list[Feature]:
    """Return the features in paint order.

    The sort is stable: features whose keys are equal on every dimension keep
    their registration order.
    """
    dimensions = tuple(dimensions)
    key = cmp_to_key(lambda a, b: compare_order(a.order, b.order, dimensions))
    return sorted(features, key=key)
