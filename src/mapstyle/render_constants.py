"""Shared render constants."""

from __future__ import annotations


__all__ = [
    "CASING_CORE",
    "CASING_ORDER",
    "CORE_ORDER",
    "DEFAULT_BACKGROUND",
    "DEFAULT_LINE_COLOR",
    "DEFAULT_LINE_WIDTH",
    "MIN_PIXEL_WIDTH",
    "OUTPUT_FORMATS",
    "ROAD_PRIORITY",
]

# Default stroke style for a Line symbolizer
DEFAULT_LINE_COLOR = (0, 0, 0)
DEFAULT_LINE_WIDTH = 1

# Canvas is filled with this before any feature is drawn
DEFAULT_BACKGROUND = (255, 255, 255)

# Synthetic order dimension injected by LineWithCasing
CASING_CORE = "casing_core"
CASING_ORDER = 0  # casing sorts first (underneath)
CORE_ORDER = 1

# Pillow strokes are whole pixels
MIN_PIXEL_WIDTH = 1

# File suffix -> Pillow format name
OUTPUT_FORMATS = {
    ".png": "PNG",
    ".gif": "GIF",
    ".bmp": "BMP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".webp": "WEBP",
}

# OSM highway types in paint priority, most important first
ROAD_PRIORITY: tuple[str, ...] = (
    "motorway",
    "trunk",
    "primary",
    "secondary",
    "tertiary",
    "motorway_link",
    "trunk_link",
    "primary_link",
    "unclassified",
    "residential",
    "living_street",
    "pedestrian",
    "service",
    "cycleway",
    "footway",
)
