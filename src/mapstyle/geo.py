"""OpenStreetMap line data fetching."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import osmnx as ox
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError, Timeout

from .cache import cache_get, cache_set
from .render_constants import ROAD_PRIORITY
from .sources import DataSourceError, Record, as_int, clean_value, geometry_to_paths


if TYPE_CHECKING:
    from geopandas import GeoDataFrame

    from .config import BBox


class OSMFetchError(DataSourceError):
    """Raised when OSM data fetching fails."""


__all__ = [
    "RAILS_SCHEMA",
    "RAIL_TAGS",
    "ROADS_SCHEMA",
    "ROAD_TAGS",
    "Column",
    "OSMFetchError",
    "OSMLineSource",
    "fetch_lines",
]

logger = logging.getLogger(__name__)

LINE_GEOMETRY_TYPES = ["LineString", "MultiLineString"]
_FALSE_TAG_VALUES = frozenset({"", "no", "false", "0"})


@dataclass(frozen=True)
class Column:
    """One attribute of an extracted record, read from an OSM tag.

    ``kind`` is ``string``, ``integer`` or ``bool``; missing tags become
    ``""``, ``0`` and ``False`` respectively.
    """

    name: str
    kind: str = "string"
    tag: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in {"string", "integer", "bool"}:
            raise ValueError(f"Unknown column kind '{self.kind}' for column '{self.name}'.")

    @property
    def source_tag(self) -> str:
        return self.tag or self.name

    def coerce(self, value: Any) -> str | int | bool:
        value = clean_value(value)
        if self.kind == "integer":
            return as_int(value)
        if self.kind == "bool":
            return value is not None and str(value).strip().lower() not in _FALSE_TAG_VALUES
        return "" if value is None else str(value)


ROADS_SCHEMA: tuple[Column, ...] = (
    Column("type", tag="highway"),
    Column("ref"),
    Column("name"),
    Column("oneway", "bool"),
    Column("maxspeed", "integer"),
    Column("layer", "integer"),
    Column("bridge", "bool"),
    Column("tunnel", "bool"),
)
ROAD_TAGS: dict[str, bool | str | list[str]] = {"highway": list(ROAD_PRIORITY)}

RAILS_SCHEMA: tuple[Column, ...] = (
    Column("type", tag="railway"),
    Column("layer", "integer"),
)
RAIL_TAGS: dict[str, bool | str | list[str]] = {"railway": True}


def fetch_lines(
    bbox: BBox,
    tags: Mapping[str, bool | str | list[str]],
    name: str,
    columns: Sequence[str] = (),
) -> GeoDataFrame:
    """Fetch OSM line features (ways) inside a bounding box.

    Args:
        bbox: Box in EPSG:4326 degrees (x = longitude, y = latitude).
        tags: OpenStreetMap tags to query.
        name: A descriptive name for logging and caching.
        columns: Tag columns to keep; others are dropped before caching.

    Returns:
        A GeoDataFrame holding only LineString/MultiLineString rows.

    Raises:
        OSMFetchError: If the features cannot be fetched.
    """
    # Deterministic hash of the query so the cache invalidates when it changes
    query_json = json.dumps({"tags": dict(tags), "columns": list(columns)}, sort_keys=True)
    query_hash = hashlib.md5(query_json.encode(), usedforsecurity=False).hexdigest()[:12]
    cache_key = f"{name}_{bbox.xmin}_{bbox.ymin}_{bbox.xmax}_{bbox.ymax}_{query_hash}"
    cached = cache_get(cache_key)
    if cached is not None:
        logger.info("Using cached %s", name)
        return cached

    try:
        data = ox.features_from_bbox(
            (bbox.xmin, bbox.ymin, bbox.xmax, bbox.ymax),
            tags=dict(tags),
        )
        # Rate limit AFTER successful API call
        time.sleep(0.3)
    except (RequestsConnectionError, Timeout) as e:
        logger.error("Network error fetching %s: %s", name, e)
        raise OSMFetchError(f"Network error fetching {name}: {e}") from e
    except HTTPError as e:
        if hasattr(e, "response") and e.response is not None and e.response.status_code == 429:
            logger.error("Rate limited by OSM API while fetching %s", name)
            raise OSMFetchError(f"Rate limited by OSM API while fetching {name}") from e
        logger.error("HTTP error fetching %s: %s", name, e)
        raise OSMFetchError(f"HTTP error fetching {name}: {e}") from e
    except Exception as e:
        # Check for osmnx InsufficientResponseError
        if "InsufficientResponseError" in type(e).__name__ or "EmptyOverpassResponse" in str(e):
            logger.info("No %s data available for this location", name)
            raise OSMFetchError(f"No {name} data available for this location") from e
        logger.exception("Unexpected error fetching %s: %s", name, e)
        raise OSMFetchError(f"Unexpected error fetching {name}: {e}") from e

    lines = data[data.geometry.type.isin(LINE_GEOMETRY_TYPES)]
    keep = [column for column in columns if column in lines.columns]
    lines = lines[[*keep, lines.geometry.name]].reset_index(drop=True)
    logger.info("Fetched %d %s lines", len(lines), name)

    if not cache_set(cache_key, lines):
        logger.warning("Failed to cache %s for %s", name, cache_key)
    return lines


class OSMLineSource:
    """Data source over OSM ways, with tags mapped to attributes by a schema.

    Data is fetched on first iteration and kept afterwards.
    """

    def __init__(
        self,
        bbox: BBox,
        tags: Mapping[str, bool | str | list[str]],
        schema: Sequence[Column],
        name: str = "lines",
    ) -> None:
        self.bbox = bbox
        self.tags = tags
        self.schema = tuple(schema)
        self.name = name
        self._frame: GeoDataFrame | None = None

    @classmethod
    def roads(cls, bbox: BBox) -> OSMLineSource:
        return cls(bbox, ROAD_TAGS, ROADS_SCHEMA, name="roads")

    @classmethod
    def rails(cls, bbox: BBox) -> OSMLineSource:
        return cls(bbox, RAIL_TAGS, RAILS_SCHEMA, name="rails")

    def _load(self) -> GeoDataFrame:
        if self._frame is None:
            self.bbox.validate()
            columns = list(dict.fromkeys(column.source_tag for column in self.schema))
            self._frame = fetch_lines(self.bbox, self.tags, self.name, columns)
        return self._frame

    def __iter__(self) -> Iterator[Record]:
        frame = self._load()
        geometry_column = frame.geometry.name
        columns = [column for column in frame.columns if column != geometry_column]
        rows = frame[columns].itertuples(index=False, name=None)
        for geometry, values in zip(frame.geometry, rows, strict=True):
            tags = dict(zip(columns, values))
            attributes = {
                column.name: column.coerce(tags.get(column.source_tag)) for column in self.schema
            }
            yield geometry_to_paths(geometry), attributes
