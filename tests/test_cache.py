"""Tests for the cache module."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import geopandas as gpd
from shapely.geometry import LineString

from mapstyle.cache import (
    CACHE_EXTENSION,
    cache_get,
    cache_set,
    clear_cache,
    get_cache_dir,
    get_cache_stats,
)


def make_frame() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {"highway": ["primary", "residential"], "layer": ["0", "1"]},
        geometry=[
            LineString([(8.39, 49.0), (8.40, 49.0)]),
            LineString([(8.4, 49.0), (8.4, 49.01)]),
        ],
        crs="EPSG:4326",
    )


class TestCacheDir:
    """Tests for get_cache_dir function."""

    def test_default_cache_dir(self, tmp_path: Path, monkeypatch) -> None:
        """Test that default cache directory is .cache."""
        monkeypatch.chdir(tmp_path)
        with patch.dict("os.environ", {}, clear=True):
            cache_dir = get_cache_dir()
            assert cache_dir.name == ".cache"
            assert (tmp_path / ".cache").is_dir()

    def test_custom_cache_dir(self, tmp_path: Path) -> None:
        """Test that custom cache directory is respected."""
        custom_dir = tmp_path / "custom_cache"
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(custom_dir)}):
            cache_dir = get_cache_dir()
            assert cache_dir == custom_dir
            assert cache_dir.exists()


class TestCacheOperations:
    """Tests for cache_get and cache_set functions."""

    def test_frame_roundtrip(self, tmp_path: Path) -> None:
        """Test that a GeoDataFrame can be cached and retrieved."""
        frame = make_frame()
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}):
            assert cache_set("roads_test", frame) is True

            retrieved = cache_get("roads_test")

        assert retrieved is not None
        assert list(retrieved["highway"]) == ["primary", "residential"]
        assert retrieved.geometry.iloc[0].equals(frame.geometry.iloc[0])
        assert (tmp_path / f"roads_test{CACHE_EXTENSION}").exists()

    def test_cache_miss(self, tmp_path: Path) -> None:
        """Test that cache miss returns None."""
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}):
            assert cache_get("nonexistent_key") is None

    def test_corrupt_file_returns_none(self, tmp_path: Path) -> None:
        """Test that an unreadable cache file is treated as a miss."""
        (tmp_path / f"broken{CACHE_EXTENSION}").write_bytes(b"not parquet")
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}):
            assert cache_get("broken") is None

    def test_cache_set_failure_returns_false(self, tmp_path: Path) -> None:
        """Test that cache_set reports failure instead of raising."""
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}):
            assert cache_set("bad", object()) is False  # type: ignore[arg-type]

    def test_key_with_path_separators(self, tmp_path: Path) -> None:
        """Test that keys cannot escape the cache directory."""
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}):
            assert cache_set("a/b\\c", make_frame()) is True
        assert (tmp_path / f"a_b_c{CACHE_EXTENSION}").exists()


class TestCacheManagement:
    """Tests for get_cache_stats and clear_cache."""

    def test_stats_and_clear(self, tmp_path: Path) -> None:
        """Test that stats count cache files and clear removes them."""
        (tmp_path / "notes.txt").write_text("keep me")
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}):
            cache_set("one", make_frame())
            cache_set("two", make_frame())

            stats = get_cache_stats()
            assert stats["total_files"] == 2
            assert stats["total_size_bytes"] > 0

            assert clear_cache() == 2
            assert get_cache_stats()["total_files"] == 0

        assert (tmp_path / "notes.txt").exists()

    def test_empty_cache_stats(self, tmp_path: Path) -> None:
        """Test stats for an empty cache."""
        with patch.dict("os.environ", {"MAPSTYLE_CACHE_DIR": str(tmp_path)}):
            assert get_cache_stats() == {
                "total_files": 0,
                "total_size_bytes": 0,
                "total_size_mb": 0.0,
            }
