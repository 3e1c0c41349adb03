"""Data sources yielding (geometry, attributes) records."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import LineString, MultiLineString


if TYPE_CHECKING:
    from geopandas import GeoDataFrame
    from shapely.geometry.base import BaseGeometry

__all__ = [
    "AttributeMap",
    "DataSource",
    "DataSourceError",
    "GeoDataFrameSource",
    "Geometry",
    "MemorySource",
    "Record",
    "ShapefileSource",
    "as_int",
    "clean_value",
    "geometry_to_paths",
]

logger = logging.getLogger(__name__)

Point: TypeAlias = tuple[float, float]
Geometry: TypeAlias = Sequence[Sequence[Point]]
AttributeMap: TypeAlias = Mapping[str, Any]
Record: TypeAlias = tuple[Geometry, AttributeMap]

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class DataSourceError(Exception):
    """Raised when the underlying geometry/attribute store cannot be read."""


class DataSource(Protocol):
    """Anything that yields every record, in storage order, on each iteration."""

    def __iter__(self) -> Iterator[Record]: ...


class MemorySource:
    """Data source over records held in memory."""

    def __init__(self, records: Iterable[Record] = ()) -> None:
        self.records: list[Record] = list(records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def append(self, geometry: Geometry, attributes: AttributeMap) -> None:
        self.records.append((geometry, attributes))


def geometry_to_paths(geometry: BaseGeometry | None) -> tuple[tuple[Point, ...], ...]:
    """Convert a shapely line geometry into a tuple of coordinate paths.

    Non-line geometries and empty geometries produce no paths. Z values are
    dropped.
    """
    if geometry is None or geometry.is_empty:
        return ()
    if isinstance(geometry, LineString):
        return (tuple((float(x), float(y)) for x, y, *_ in geometry.coords),)
    if isinstance(geometry, MultiLineString):
        return tuple(
            tuple((float(x), float(y)) for x, y, *_ in line.coords) for line in geometry.geoms
        )
    logger.debug("Skipping non-line geometry of type %s", geometry.geom_type)
    return ()


def clean_value(value: Any) -> Any:
    """Turn pandas/numpy cell values into plain Python scalars."""
    if np.ndim(value) == 0 and pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def as_int(value: Any) -> int:
    """Loosely read an integer attribute; unreadable values count as 0."""
    if value is None:
        return 0
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else 0


class GeoDataFrameSource:
    """Data source over the rows of a GeoDataFrame."""

    def __init__(self, frame: GeoDataFrame) -> None:
        self.frame = frame

    def __iter__(self) -> Iterator[Record]:
        geometry_column = self.frame.geometry.name
        columns = [column for column in self.frame.columns if column != geometry_column]
        rows = self.frame[columns].itertuples(index=False, name=None)
        for geometry, values in zip(self.frame.geometry, rows, strict=True):
            attributes = {str(column): clean_value(value) for column, value in zip(columns, values)}
            yield geometry_to_paths(geometry), attributes

    def __len__(self) -> int:
        return len(self.frame)


class ShapefileSource:
    """Data source reading a shapefile (or any format geopandas can open).

    The file is read on first iteration and kept in memory afterwards.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._frame: GeoDataFrame | None = None

    def _load(self) -> GeoDataFrame:
        if self._frame is None:
            logger.info("Reading %s...", self.path)
            try:
                self._frame = gpd.read_file(self.path)
            except Exception as e:
                logger.error("Could not read %s: %s", self.path, e)
                raise DataSourceError(f"Could not read data source '{self.path}': {e}") from e
            logger.debug("Read %d records from %s", len(self._frame), self.path)
        return self._frame

    def __iter__(self) -> Iterator[Record]:
        return iter(GeoDataFrameSource(self._load()))
