"""mapstyle - Render attributed line data into a raster map.

Symbolizers turn each (geometry, attributes) record into styled features
through plain functions of the attributes; the map sorts every feature by a
configurable multi-key paint order and draws them in one pass.
"""

from importlib.metadata import PackageNotFoundError, version

from .config import BBox, ConfigurationError, RenderConfig, load_render_config
from .features import Feature, compare_order, sort_features
from .render import Map, PillowCanvas, render_map
from .sources import DataSourceError, GeoDataFrameSource, MemorySource, ShapefileSource
from .symbolizers import Line, LineWithCasing, StylingError


try:
    __version__ = version("mapstyle")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "BBox",
    "ConfigurationError",
    "DataSourceError",
    "Feature",
    "GeoDataFrameSource",
    "Line",
    "LineWithCasing",
    "Map",
    "MemorySource",
    "PillowCanvas",
    "RenderConfig",
    "ShapefileSource",
    "StylingError",
    "__version__",
    "compare_order",
    "load_render_config",
    "render_map",
    "sort_features",
]
