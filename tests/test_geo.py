"""Tests for the geo module."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import geopandas as gpd
import numpy as np
import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError, Timeout
from shapely.geometry import LineString, MultiLineString, Point

from mapstyle.config import BBox, ConfigurationError
from mapstyle.geo import (
    RAIL_TAGS,
    ROAD_TAGS,
    ROADS_SCHEMA,
    Column,
    OSMFetchError,
    OSMLineSource,
    fetch_lines,
)
from mapstyle.render_constants import ROAD_PRIORITY
from mapstyle.sources import DataSourceError


if TYPE_CHECKING:
    from pathlib import Path


BBOX = BBox(8.38, 48.995, 8.42, 49.01)


def osm_frame() -> gpd.GeoDataFrame:
    """A features_from_bbox-like result with a node and two ways."""
    return gpd.GeoDataFrame(
        {
            "highway": ["bus_stop", "primary", "residential"],
            "name": ["Stop", "Kaiserallee", np.nan],
            "layer": [np.nan, "1", np.nan],
            "bridge": [np.nan, "yes", "no"],
            "surface": ["paved", "asphalt", np.nan],
        },
        geometry=[
            Point(8.39, 49.0),
            LineString([(8.38, 49.0), (8.42, 49.0)]),
            MultiLineString([[(8.4, 48.995), (8.4, 49.0)], [(8.4, 49.0), (8.4, 49.01)]]),
        ],
        crs="EPSG:4326",
    )


class TestColumn:
    """Tests for Column coercion."""

    def test_string_column(self) -> None:
        """Test that missing strings become empty."""
        column = Column("name")
        assert column.coerce("Kaiserallee") == "Kaiserallee"
        assert column.coerce(None) == ""
        assert column.coerce(np.nan) == ""

    def test_integer_column(self) -> None:
        """Test lenient integer parsing of tags."""
        column = Column("layer", "integer")
        assert column.coerce("-1") == -1
        assert column.coerce("1;2") == 1
        assert column.coerce(np.nan) == 0

    def test_bool_column(self) -> None:
        """Test OSM yes/no style flags."""
        column = Column("bridge", "bool")
        assert column.coerce("yes") is True
        assert column.coerce("viaduct") is True
        assert column.coerce("no") is False
        assert column.coerce(None) is False

    def test_source_tag(self) -> None:
        """Test that columns may read from a differently named tag."""
        assert Column("type", tag="highway").source_tag == "highway"
        assert Column("ref").source_tag == "ref"

    def test_road_tags_cover_ranked_types(self) -> None:
        """Test that every ranked highway type is queried."""
        assert ROAD_TAGS == {"highway": list(ROAD_PRIORITY)}

    def test_unknown_kind(self) -> None:
        """Test that an unknown kind is rejected."""
        with pytest.raises(ValueError, match="Unknown column kind"):
            Column("layer", "float")


class TestFetchLines:
    """Tests for fetch_lines function."""

    def test_returns_cached_lines(self, tmp_path: Path) -> None:
        """Test that cached data is returned without an API call."""
        cached = MagicMock()
        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=cached),
            patch("mapstyle.geo.ox") as mock_ox,
        ):
            result = fetch_lines(BBOX, ROAD_TAGS, "roads")

            assert result is cached
            mock_ox.features_from_bbox.assert_not_called()

    def test_fetches_lines_on_cache_miss(self, tmp_path: Path) -> None:
        """Test that fetched data is filtered to lines and cached."""
        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=None),
            patch("mapstyle.geo.cache_set", return_value=True) as mock_cache_set,
            patch("mapstyle.geo.ox") as mock_ox,
            patch("mapstyle.geo.time.sleep"),
        ):
            mock_ox.features_from_bbox.return_value = osm_frame()

            result = fetch_lines(BBOX, ROAD_TAGS, "roads", ["highway", "layer", "ref"])

            mock_ox.features_from_bbox.assert_called_once_with(
                (8.38, 48.995, 8.42, 49.01), tags=ROAD_TAGS
            )
            mock_cache_set.assert_called_once()
            assert list(result["highway"]) == ["primary", "residential"]
            assert list(result.columns) == ["highway", "layer", "geometry"]
            assert list(result.index) == [0, 1]

    def test_cache_key_depends_on_query(self, tmp_path: Path) -> None:
        """Test that different tag queries use different cache keys."""
        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=MagicMock()) as mock_cache_get,
        ):
            fetch_lines(BBOX, ROAD_TAGS, "lines")
            fetch_lines(BBOX, RAIL_TAGS, "lines")

        first_key = mock_cache_get.call_args_list[0].args[0]
        second_key = mock_cache_get.call_args_list[1].args[0]
        assert first_key != second_key
        assert first_key.startswith("lines_8.38_48.995_8.42_49.01_")

    def test_raises_on_network_timeout(self, tmp_path: Path) -> None:
        """Test that OSMFetchError is raised on network timeout."""
        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=None),
            patch("mapstyle.geo.ox") as mock_ox,
        ):
            mock_ox.features_from_bbox.side_effect = Timeout("Timed out")

            with pytest.raises(OSMFetchError, match="Network error"):
                fetch_lines(BBOX, ROAD_TAGS, "roads")

    def test_raises_on_connection_error(self, tmp_path: Path) -> None:
        """Test that OSMFetchError is raised on connection error."""
        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=None),
            patch("mapstyle.geo.ox") as mock_ox,
        ):
            mock_ox.features_from_bbox.side_effect = RequestsConnectionError("Refused")

            with pytest.raises(OSMFetchError, match="Network error"):
                fetch_lines(BBOX, ROAD_TAGS, "roads")

    def test_raises_on_rate_limit(self, tmp_path: Path) -> None:
        """Test that OSMFetchError is raised on HTTP 429 rate limit."""
        mock_response = MagicMock()
        mock_response.status_code = 429

        http_error = HTTPError()
        http_error.response = mock_response

        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=None),
            patch("mapstyle.geo.ox") as mock_ox,
        ):
            mock_ox.features_from_bbox.side_effect = http_error

            with pytest.raises(OSMFetchError, match="Rate limited"):
                fetch_lines(BBOX, ROAD_TAGS, "roads")

    def test_raises_on_empty_response(self, tmp_path: Path) -> None:
        """Test that OSMFetchError is raised when the area has no data."""

        class InsufficientResponseError(Exception):
            pass

        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=None),
            patch("mapstyle.geo.ox") as mock_ox,
        ):
            mock_ox.features_from_bbox.side_effect = InsufficientResponseError("No data")

            with pytest.raises(OSMFetchError, match="No rails data"):
                fetch_lines(BBOX, RAIL_TAGS, "rails")

    def test_fetch_error_is_data_source_error(self) -> None:
        """Test that fetch failures can be handled as data source errors."""
        assert issubclass(OSMFetchError, DataSourceError)


class TestOSMLineSource:
    """Tests for OSMLineSource."""

    def test_roads_records(self, tmp_path: Path) -> None:
        """Test that ways become records with schema attributes."""
        with (
            patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}),
            patch("mapstyle.geo.cache_get", return_value=None),
            patch("mapstyle.geo.cache_set", return_value=True),
            patch("mapstyle.geo.ox") as mock_ox,
            patch("mapstyle.geo.time.sleep"),
        ):
            mock_ox.features_from_bbox.return_value = osm_frame()
            source = OSMLineSource.roads(BBOX)

            records = list(source)
            again = list(source)

        mock_ox.features_from_bbox.assert_called_once()
        assert records == again
        (primary_paths, primary), (residential_paths, residential) = records
        assert primary_paths == (((8.38, 49.0), (8.42, 49.0)),)
        assert len(residential_paths) == 2
        assert set(primary) == {column.name for column in ROADS_SCHEMA}
        assert primary["type"] == "primary"
        assert primary["name"] == "Kaiserallee"
        assert primary["layer"] == 1
        assert primary["bridge"] is True
        assert primary["ref"] == ""
        assert residential["name"] == ""
        assert residential["layer"] == 0
        assert residential["bridge"] is False
        assert "surface" not in primary

    def test_rails_factory(self) -> None:
        """Test the rail source configuration."""
        source = OSMLineSource.rails(BBOX)
        assert source.tags == RAIL_TAGS
        assert source.name == "rails"

    def test_invalid_bbox_fails_before_fetch(self) -> None:
        """Test that a degenerate bbox is rejected without a network call."""
        with patch("mapstyle.geo.ox") as mock_ox:
            source = OSMLineSource.roads(BBox(8.4, 49.0, 8.4, 49.01))
            with pytest.raises(ConfigurationError):
                list(source)
            mock_ox.features_from_bbox.assert_not_called()
