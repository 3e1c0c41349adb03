"""Render configuration and validation."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from dataclasses import fields as dataclass_fields
from numbers import Integral, Real
from pathlib import Path
from typing import Any, TypeAlias

import matplotlib.colors as mcolors

from .render_constants import DEFAULT_BACKGROUND


__all__ = [
    "DEFAULT_ORDER",
    "DEFAULT_RENDER_CONFIG",
    "BBox",
    "ColorSpec",
    "ConfigurationError",
    "RGBColor",
    "RenderConfig",
    "load_render_config",
    "resolve_color",
    "validate_canvas",
    "validate_order",
]


RGBColor: TypeAlias = tuple[int, int, int]
ColorSpec: TypeAlias = "str | Sequence[int]"

# Coarse to fine: vertical layer, then casing below core, then road importance
DEFAULT_ORDER = ("layer", "casing_core", "road_type")


class ConfigurationError(ValueError):
    """Raised when canvas, bounding box or ordering configuration is invalid."""

    pass


def resolve_color(color: ColorSpec) -> RGBColor:
    """Resolve a color spec into an 8-bit RGB triple.

    Args:
        color: An ``(r, g, b)`` sequence of integers in 0-255, or any color
            string matplotlib understands (``"#e5b50d"``, ``"navy"``, ...).

    Returns:
        A tuple of three ints.

    Raises:
        ValueError: If the value is not a usable color.
    """
    if isinstance(color, str):
        red, green, blue = mcolors.to_rgb(color)
        return (round(red * 255), round(green * 255), round(blue * 255))

    if not isinstance(color, Sequence) or len(color) != 3:
        raise ValueError(f"Color must be a color string or an (r, g, b) triple, got {color!r}.")

    channels = []
    for channel in color:
        if isinstance(channel, bool) or not isinstance(channel, Integral):
            raise ValueError(f"Color channels must be integers, got {color!r}.")
        if not 0 <= channel <= 255:
            raise ValueError(f"Color channels must be within 0-255, got {color!r}.")
        channels.append(int(channel))
    return (channels[0], channels[1], channels[2])


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def validate_canvas(width: Any, height: Any) -> None:
    """Check that the canvas size is a pair of positive integers."""
    for label, value in (("width", width), ("height", height)):
        if value is None:
            raise ConfigurationError("Canvas size was never configured.")
        if isinstance(value, bool) or not isinstance(value, Integral):
            raise ConfigurationError(f"Canvas {label} must be an integer, got {value!r}.")
        if value <= 0:
            raise ConfigurationError(f"Canvas {label} must be positive, got {value}.")


def validate_order(dimensions: Any) -> tuple[str, ...]:
    """Check the order dimensions and return them as a tuple.

    Raises:
        ConfigurationError: If the sequence is empty, holds anything other than
            non-empty strings, or names a dimension twice.
    """
    if isinstance(dimensions, str) or not isinstance(dimensions, Sequence):
        raise ConfigurationError(f"Ordering must be a sequence of names, got {dimensions!r}.")
    if not dimensions:
        raise ConfigurationError("Order dimensions are empty.")

    seen: set[str] = set()
    for dimension in dimensions:
        if not isinstance(dimension, str) or not dimension:
            raise ConfigurationError(
                f"Order dimension must be a non-empty string, got {dimension!r}."
            )
        if dimension in seen:
            raise ConfigurationError(f"Order dimension '{dimension}' is listed twice.")
        seen.add(dimension)
    return tuple(dimensions)


@dataclass(frozen=True)
class BBox:
    """Real-world rectangle mapped onto the canvas."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    def validate(self) -> None:
        """Reject non-numeric or degenerate boxes."""
        for name in ("xmin", "ymin", "xmax", "ymax"):
            value = getattr(self, name)
            if not _is_number(value):
                raise ConfigurationError(
                    f"Bounding box {name} must be a finite number, got {value!r}."
                )
        if self.xmax <= self.xmin:
            raise ConfigurationError(
                f"Bounding box has no width (xmin={self.xmin}, xmax={self.xmax})."
            )
        if self.ymax <= self.ymin:
            raise ConfigurationError(
                f"Bounding box has no height (ymin={self.ymin}, ymax={self.ymax})."
            )

    @classmethod
    def from_mapping(cls, data: Any) -> BBox:
        """Build a box from a ``{xmin, ymin, xmax, ymax}`` mapping."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("Bounding box must be an object with xmin, ymin, xmax, ymax.")
        expected = {"xmin", "ymin", "xmax", "ymax"}
        if set(data) != expected:
            raise ConfigurationError(
                f"Bounding box keys must be exactly {sorted(expected)}, got {sorted(data)}."
            )
        return cls(data["xmin"], data["ymin"], data["xmax"], data["ymax"])


@dataclass(frozen=True)
class RenderConfig:
    """Everything a render pass needs besides its symbolizers."""

    canvas_width: int
    canvas_height: int
    bbox: BBox
    order_dimensions: tuple[str, ...] = DEFAULT_ORDER
    output_path: Path | None = None
    background: ColorSpec = DEFAULT_BACKGROUND

    def validate(self) -> None:
        """Validate the whole configuration.

        Raises:
            ConfigurationError: On the first invalid setting.
        """
        validate_canvas(self.canvas_width, self.canvas_height)
        if self.bbox is None:
            raise ConfigurationError("Bounding box was never configured.")
        self.bbox.validate()
        validate_order(self.order_dimensions)
        try:
            resolve_color(self.background)
        except ValueError as e:
            raise ConfigurationError(f"Invalid background color: {e}") from e


DEFAULT_RENDER_CONFIG = RenderConfig(
    canvas_width=1200,
    canvas_height=700,
    bbox=BBox(8.38, 48.995, 8.42, 49.01),
)


def load_render_config(path: str | Path) -> RenderConfig:
    """Load and validate a RenderConfig from a JSON file.

    Args:
        path: Path to a JSON object whose keys are RenderConfig field names.

    Returns:
        A validated RenderConfig.

    Raises:
        ConfigurationError: If the file is not a valid configuration.
        OSError: If the file cannot be read.
    """
    with open(path, encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Render config '{path}' is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError("Render config must be a JSON object.")
    allowed_keys = {field.name for field in dataclass_fields(RenderConfig)}
    unknown_keys = set(data) - allowed_keys
    if unknown_keys:
        raise ConfigurationError(f"Unknown render config keys: {sorted(unknown_keys)}")
    missing_keys = {"canvas_width", "canvas_height", "bbox"} - data.keys()
    if missing_keys:
        raise ConfigurationError(f"Render config is missing keys: {sorted(missing_keys)}")

    data["bbox"] = BBox.from_mapping(data["bbox"])
    if "order_dimensions" in data:
        data["order_dimensions"] = validate_order(data["order_dimensions"])
    if data.get("output_path") is not None:
        data["output_path"] = Path(data["output_path"]).expanduser()
    if isinstance(data.get("background"), list):
        data["background"] = tuple(data["background"])

    config = RenderConfig(**data)
    config.validate()
    return config
