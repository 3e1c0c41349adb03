"""Road and rail styling and style pack loading."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from dataclasses import fields as dataclass_fields
from typing import Any

from .config import ColorSpec
from .render_constants import ROAD_PRIORITY
from .sources import AttributeMap, DataSource, as_int
from .symbolizers import Line, LineWithCasing


__all__ = [
    "DEFAULT_ROAD_STYLE",
    "ROAD_PRIORITY",
    "ROAD_RANK_BASE",
    "ROAD_WIDTHS",
    "RoadStyle",
    "as_bool",
    "as_int",
    "load_style_pack",
    "rail_symbolizer",
    "road_symbolizer",
]

# Core stroke width in pixels by road type
ROAD_WIDTHS: dict[str, float] = {
    "motorway": 10,
    "trunk": 10,
    "primary": 8,
    "motorway_link": 2,
    "trunk_link": 2,
    "primary_link": 2,
    "secondary": 8,
    "tertiary": 6,
    "unclassified": 6,
    "residential": 6,
    "cycleway": 1,
    "footway": 1,
    "service": 2,
    "living_street": 6,
    "pedestrian": 6,
}

ROAD_RANK_BASE = 100

_TRUE_STRINGS = frozenset({"1", "t", "true", "y", "yes"})


def as_bool(value: Any) -> bool:
    """Loosely read a boolean attribute (shapefile flags, OSM ``yes``)."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


@dataclass(frozen=True)
class RoadStyle:
    """Attribute-driven styling for road and rail lines."""

    core_widths: dict[str, float] = field(default_factory=lambda: dict(ROAD_WIDTHS))
    default_core_width: float = 1
    casing_width: float = 2
    bridge_casing_width: float = 4
    major_roads: tuple[str, ...] = (
        "motorway",
        "trunk",
        "primary",
        "motorway_link",
        "trunk_link",
        "primary_link",
    )
    minor_roads: tuple[str, ...] = ("secondary", "tertiary")
    major_color: ColorSpec = (229, 181, 13)
    minor_color: ColorSpec = (229, 225, 13)
    default_color: ColorSpec = (255, 255, 255)
    casing_color: ColorSpec = (150, 150, 150)
    bridge_casing_color: ColorSpec = (0, 0, 0)
    road_priority: tuple[str, ...] = ROAD_PRIORITY
    rail_color: ColorSpec = (0, 0, 200)
    rail_width: float = 1

    def road_rank(self, road_type: Any) -> int:
        """Higher for more important roads; 0 for unknown types."""
        if road_type in self.road_priority:
            return ROAD_RANK_BASE - self.road_priority.index(road_type)
        return 0

    def road_core_color(self, attributes: AttributeMap) -> ColorSpec:
        road_type = attributes.get("type")
        if road_type in self.major_roads:
            return self.major_color
        if road_type in self.minor_roads:
            return self.minor_color
        return self.default_color

    def road_casing_color(self, attributes: AttributeMap) -> ColorSpec:
        if as_bool(attributes.get("bridge")):
            return self.bridge_casing_color
        return self.casing_color

    def road_core_width(self, attributes: AttributeMap) -> float:
        return self.core_widths.get(attributes.get("type"), self.default_core_width)

    def road_casing_width(self, attributes: AttributeMap) -> float:
        if as_bool(attributes.get("bridge")):
            return self.bridge_casing_width
        return self.casing_width

    def road_order(self, attributes: AttributeMap) -> dict[str, int]:
        return {
            "layer": as_int(attributes.get("layer")),
            "road_type": self.road_rank(attributes.get("type")),
        }

    def rail_order(self, attributes: AttributeMap) -> dict[str, int]:
        return {"layer": as_int(attributes.get("layer"))}


DEFAULT_ROAD_STYLE = RoadStyle()



def load_style_pack(path: str) -> RoadStyle:
    """Load a RoadStyle from a JSON style pack file.

    Keys are RoadStyle field names; omitted fields keep their defaults.
    """
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("Style pack must be a JSON object.")
    allowed_keys = {field.name for field in dataclass_fields(RoadStyle)}
    unknown_keys = set(data) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown style pack keys: {sorted(unknown_keys)}")
    # JSON arrays come back as lists; colors and road lists are tuples
    for key, value in data.items():
        if isinstance(value, list):
            data[key] = tuple(value)
    return RoadStyle(**data)


def road_symbolizer(
    source: DataSource,
    style: RoadStyle = DEFAULT_ROAD_STYLE,
    name: str = "roads",
) -> LineWithCasing:
    """Build the cased road symbolizer for a road data source."""
    return LineWithCasing(
        source=source,
        core_color=style.road_core_color,
        casing_color=style.road_casing_color,
        core_width=style.road_core_width,
        casing_width=style.road_casing_width,
        order=style.road_order,
        name=name,
    )


def rail_symbolizer(
    source: DataSource,
    style: RoadStyle = DEFAULT_ROAD_STYLE,
    name: str = "rails",
) -> Line:
    """Build the rail symbolizer for a rail data source."""
    return Line(
        source=source,
        color=style.rail_color,
        width=style.rail_width,
        order=style.rail_order,
        name=name,
    )
