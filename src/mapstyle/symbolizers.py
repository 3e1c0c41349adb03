"""Symbolizers: attribute-driven line styles that materialize Features."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from numbers import Real
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias, TypeVar

from .config import ColorSpec, resolve_color
from .features import Feature, OrderKeyMap
from .render_constants import (
    CASING_CORE,
    CASING_ORDER,
    CORE_ORDER,
    DEFAULT_LINE_COLOR,
    DEFAULT_LINE_WIDTH,
)
from .sources import AttributeMap, DataSource, Geometry


if TYPE_CHECKING:
    from .render import Map

__all__ = [
    "Line",
    "LineWithCasing",
    "StyleFunction",
    "StylingError",
    "Symbolizer",
    "style_function",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")
StyleFunction: TypeAlias = Callable[[AttributeMap], T]


class StylingError(Exception):
    """Raised when a style function fails or returns an unusable value.

    Attributes:
        index: Position of the offending record in its data source.
        attributes: Snapshot of the record's attributes.
        symbolizer: Label of the symbolizer that was styling it.
    """

    def __init__(
        self,
        message: str,
        *,
        index: int,
        attributes: dict[str, Any],
        symbolizer: str = "",
    ) -> None:
        super().__init__(message)
        self.index = index
        self.attributes = attributes
        self.symbolizer = symbolizer


def style_function(value: T | StyleFunction[T]) -> StyleFunction[T]:
    """Return ``value`` if it is callable, else a function that always returns it."""
    if callable(value):
        return value

    def constant(attributes: AttributeMap) -> T:  # noqa: ARG001
        return value

    return constant


def _resolve_width(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise ValueError(f"width must be a finite number, got {value!r}")
    if value < 0:
        raise ValueError(f"width must not be negative, got {value!r}")
    return float(value)


def _resolve_order(value: Any) -> dict[str, float]:
    if not isinstance(value, Mapping):
        raise ValueError(f"order key must be a mapping, got {value!r}")
    order: dict[str, float] = {}
    for dimension, rank in value.items():
        if isinstance(rank, bool) or not isinstance(rank, Real) or not math.isfinite(rank):
            raise ValueError(
                f"order dimension '{dimension}' must be a finite number, got {rank!r}"
            )
        order[str(dimension)] = rank
    return order


def _with_dimension(
    order: StyleFunction[OrderKeyMap],
    dimension: str,
    rank: int,
) -> StyleFunction[OrderKeyMap]:
    """Wrap an order function so its result also carries ``dimension: rank``."""

    def decorated(attributes: AttributeMap) -> OrderKeyMap:
        base = order(attributes)
        if not isinstance(base, Mapping):
            raise ValueError(f"order key must be a mapping, got {base!r}")
        return {**base, dimension: rank}

    return decorated


@dataclass(frozen=True)
class Line:
    """A single stroke per record.

    Every style field takes a constant or a function of the record's
    attributes. Attributes are handed to style functions read-only.
    """

    source: DataSource
    color: ColorSpec | StyleFunction[ColorSpec] = DEFAULT_LINE_COLOR
    width: float | StyleFunction[float] = DEFAULT_LINE_WIDTH
    order: OrderKeyMap | StyleFunction[OrderKeyMap] = field(default_factory=dict)
    name: str = "line"

    def __post_init__(self) -> None:
        object.__setattr__(self, "color", style_function(self.color))
        object.__setattr__(self, "width", style_function(self.width))
        object.__setattr__(self, "order", style_function(self.order))

    def materialize(self, geometry: Geometry, attributes: AttributeMap, index: int) -> Feature:
        """Evaluate the style functions for one record.

        Raises:
            StylingError: If a style function raises or returns something unusable.
        """
        view = MappingProxyType(attributes)
        try:
            color = resolve_color(self.color(view))
            width = _resolve_width(self.width(view))
            order = _resolve_order(self.order(view))
        except Exception as e:
            raise StylingError(
                f"Symbolizer '{self.name}' failed on record {index}: {e}",
                index=index,
                attributes=dict(attributes),
                symbolizer=self.name,
            ) from e
        return Feature(
            geometry=geometry,
            color=color,
            width=width,
            order=order,
            source=self.name,
            index=index,
        )

    def prepare(self, map_: Map) -> int:
        """Register one Feature per source record with ``map_``.

        Calling this twice registers every feature twice.

        Returns:
            The number of features registered.
        """
        count = 0
        for index, (geometry, attributes) in enumerate(self.source):
            map_.register_feature(self.materialize(geometry, attributes, index))
            count += 1
        logger.debug("Symbolizer '%s' registered %d features", self.name, count)
        return count


@dataclass(frozen=True)
class LineWithCasing:
    """A core stroke drawn over a wider casing stroke.

    The casing is ``core_width + casing_width`` wide, so it shows
    ``casing_width`` on each side of the core (renderer permitting). Both
    strokes share ``order``; the casing adds ``casing_core=0`` and the core
    ``casing_core=1``.
    """

    source: DataSource
    core_color: ColorSpec | StyleFunction[ColorSpec] = DEFAULT_LINE_COLOR
    casing_color: ColorSpec | StyleFunction[ColorSpec] = DEFAULT_LINE_COLOR
    core_width: float | StyleFunction[float] = DEFAULT_LINE_WIDTH
    casing_width: float | StyleFunction[float] = DEFAULT_LINE_WIDTH
    order: OrderKeyMap | StyleFunction[OrderKeyMap] = field(default_factory=dict)
    name: str = "line_with_casing"

    def __post_init__(self) -> None:
        for name in ("core_color", "casing_color", "core_width", "casing_width", "order"):
            object.__setattr__(self, name, style_function(getattr(self, name)))

    def _casing_stroke_width(self, attributes: AttributeMap) -> float:
        return self.core_width(attributes) + self.casing_width(attributes)

    @cached_property
    def casing(self) -> Line:
        return Line(
            source=self.source,
            color=self.casing_color,
            width=self._casing_stroke_width,
            order=_with_dimension(self.order, CASING_CORE, CASING_ORDER),
            name=f"{self.name}.casing",
        )

    @cached_property
    def core(self) -> Line:
        return Line(
            source=self.source,
            color=self.core_color,
            width=self.core_width,
            order=_with_dimension(self.order, CASING_CORE, CORE_ORDER),
            name=f"{self.name}.core",
        )

    def prepare(self, map_: Map) -> int:
        """Register the casing features, then the core features."""
        return self.casing.prepare(map_) + self.core.prepare(map_)


Symbolizer: TypeAlias = Line | LineWithCasing
