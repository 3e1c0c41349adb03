"""On-disk cache for fetched line data.

GeoDataFrames are stored as GeoParquet. No pickle serialization is used, so
loading a cache file cannot execute arbitrary code.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from geopandas import GeoDataFrame

__all__ = [
    "CACHE_EXTENSION",
    "cache_get",
    "cache_set",
    "clear_cache",
    "get_cache_dir",
    "get_cache_stats",
]


logger = logging.getLogger(__name__)

CACHE_EXTENSION = ".parquet"


def get_cache_dir() -> Path:
    """Get the cache directory path, creating it if necessary."""
    cache_path = Path(os.environ.get("MAPSTYLE_CACHE_DIR", ".cache"))
    cache_path.mkdir(parents=True, exist_ok=True)
    return cache_path


def _cache_path(key: str) -> Path:
    """Generate a safe cache file path for a given key."""
    safe = key.replace(os.sep, "_").replace("/", "_").replace("\\", "_")
    return get_cache_dir() / f"{safe}{CACHE_EXTENSION}"


def cache_get(key: str) -> GeoDataFrame | None:
    """Retrieve a cached GeoDataFrame by key.

    Args:
        key: The cache key to look up.

    Returns:
        The cached frame if found, None on cache miss or error.
    """
    try:
        path = _cache_path(key)
        if not path.exists():
            logger.debug("Cache miss", extra={"key": key})
            return None

        import geopandas as gpd

        result = gpd.read_parquet(path)
        logger.debug("Cache hit", extra={"key": key})
        return result

    except Exception as e:
        logger.warning("Cache read error for %s: %s", key, e)
        return None


def cache_set(key: str, value: GeoDataFrame) -> bool:
    """Store a GeoDataFrame in the cache.

    Args:
        key: The cache key.
        value: The frame to cache.

    Returns:
        True if successful, False on error.
    """
    try:
        path = _cache_path(key)
        value.to_parquet(path)
        logger.debug("Cache write", extra={"key": key})
        return True

    except Exception as e:
        logger.warning("Cache write error for %s: %s", key, e)
        return False


def get_cache_stats() -> dict[str, Any]:
    """Get statistics about the cache.

    Returns:
        Dict with ``total_files``, ``total_size_bytes`` and ``total_size_mb``.
    """
    cache_dir = get_cache_dir()
    stats: dict[str, Any] = {
        "total_files": 0,
        "total_size_bytes": 0,
        "total_size_mb": 0.0,
    }

    for path in cache_dir.glob(f"*{CACHE_EXTENSION}"):
        stats["total_files"] += 1
        stats["total_size_bytes"] += path.stat().st_size

    stats["total_size_mb"] = round(stats["total_size_bytes"] / (1024 * 1024), 2)
    return stats


def clear_cache() -> int:
    """Delete every cache file.

    Returns:
        Number of files deleted.
    """
    cache_dir = get_cache_dir()
    deleted = 0

    for path in cache_dir.glob(f"*{CACHE_EXTENSION}"):
        try:
            path.unlink()
            deleted += 1
            logger.debug("Deleted cache file: %s", path)
        except Exception as e:
            logger.warning("Failed to delete %s: %s", path, e)

    logger.info("Cleared %d cache files", deleted)
    return deleted
