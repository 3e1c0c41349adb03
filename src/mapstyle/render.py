"""Map configuration, paint ordering and rasterization."""

from __future__ import annotations

import contextlib
import logging
import os
import sys
import tempfile
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np
from PIL import Image, ImageDraw
from tqdm import tqdm

from .config import (
    BBox,
    ColorSpec,
    ConfigurationError,
    RenderConfig,
    RGBColor,
    resolve_color,
    validate_canvas,
)
from .features import Feature, sort_features
from .render_constants import DEFAULT_BACKGROUND, MIN_PIXEL_WIDTH, OUTPUT_FORMATS


if TYPE_CHECKING:
    from .sources import Point
    from .symbolizers import Symbolizer

__all__ = [
    "Canvas",
    "Map",
    "PillowCanvas",
    "render_map",
]

logger = logging.getLogger(__name__)


class Canvas(Protocol):
    """Pixel-space drawing surface."""

    image: Any

    def fill_background(self, color: RGBColor) -> None:
        """Paint the whole surface with a flat color."""
        ...

    def draw_line(
        self,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        color: RGBColor,
        width: float,
    ) -> None:
        """Stroke one segment in pixel coordinates."""
        ...

    def encode(self, path: Path) -> Path:
        """Write the raster to ``path``; the file is either complete or absent."""
        ...


class PillowCanvas:
    """Canvas backed by a Pillow RGB image."""

    def __init__(self, width: int, height: int) -> None:
        self.image = Image.new("RGB", (width, height), DEFAULT_BACKGROUND)
        self._draw = ImageDraw.Draw(self.image)

    def fill_background(self, color: RGBColor) -> None:
        self._draw.rectangle((0, 0, self.image.width, self.image.height), fill=color)

    def draw_line(
        self,
        x0: float,
        y0: float,
        x1: float,
        y1: float,
        color: RGBColor,
        width: float,
    ) -> None:
        pixel_width = max(MIN_PIXEL_WIDTH, round(width))
        self._draw.line([(x0, y0), (x1, y1)], fill=color, width=pixel_width)

    def encode(self, path: Path) -> Path:
        """Save the image, picking the format from the file suffix (PNG by default).

        The image is written to a temporary file next to ``path`` and moved into
        place, so a failed save never leaves a partial file behind.
        """
        path = Path(path)
        fmt = OUTPUT_FORMATS.get(path.suffix.lower(), "PNG")
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                self.image.save(handle, format=fmt)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
        return path


class Map:
    """Owns the canvas setup, the symbolizers and the feature registry.

    Configuration calls chain::

        map_ = Map().configure_canvas(1200, 700).configure_bbox(8.38, 48.995, 8.42, 49.01)
        map_.configure_order("layer", "casing_core")

    Settings are only validated when they are used, by ``project`` or
    ``render``.
    """

    def __init__(self, canvas_factory: Callable[[int, int], Canvas] = PillowCanvas) -> None:
        self.canvas_width: int | None = None
        self.canvas_height: int | None = None
        self.bbox: BBox | None = None
        self.order_dimensions: tuple[str, ...] = ()
        self.background: ColorSpec = DEFAULT_BACKGROUND
        self.symbolizers: list[Symbolizer] = []
        self._features: list[Feature] = []
        self._canvas_factory = canvas_factory

    @classmethod
    def from_config(
        cls,
        config: RenderConfig,
        canvas_factory: Callable[[int, int], Canvas] = PillowCanvas,
    ) -> Map:
        """Create a Map with canvas, bbox, ordering and background taken from ``config``."""
        return (
            cls(canvas_factory)
            .configure_canvas(config.canvas_width, config.canvas_height)
            .configure_bbox(config.bbox.xmin, config.bbox.ymin, config.bbox.xmax, config.bbox.ymax)
            .configure_order(*config.order_dimensions)
            .configure_background(config.background)
        )

    def configure_canvas(self, width: int, height: int) -> Map:
        self.canvas_width = width
        self.canvas_height = height
        return self

    def configure_bbox(self, xmin: float, ymin: float, xmax: float, ymax: float) -> Map:
        self.bbox = BBox(xmin, ymin, xmax, ymax)
        return self

    def configure_order(self, *dimensions: str) -> Map:
        self.order_dimensions = dimensions
        return self

    def configure_background(self, color: ColorSpec) -> Map:
        self.background = color
        return self

    def attach(self, symbolizer: Symbolizer) -> Symbolizer:
        """Add a symbolizer; it is prepared on every render, in attachment order."""
        self.symbolizers.append(symbolizer)
        return symbolizer

    def register_feature(self, feature: Feature) -> None:
        """Append a feature to the registry. Called by symbolizers while preparing."""
        self._features.append(feature)

    @property
    def features(self) -> tuple[Feature, ...]:
        return tuple(self._features)

    def reset(self) -> None:
        """Empty the feature registry."""
        self._features = []

    def to_config(self) -> RenderConfig:
        """Collect the current settings into a validated RenderConfig.

        Raises:
            ConfigurationError: If any setting is missing or invalid.
        """
        config = RenderConfig(
            canvas_width=self.canvas_width,  # type: ignore[arg-type]
            canvas_height=self.canvas_height,  # type: ignore[arg-type]
            bbox=self.bbox,  # type: ignore[arg-type]
            order_dimensions=self.order_dimensions,
            background=self.background,
        )
        config.validate()
        return config

    def _projection(self) -> tuple[int, int, BBox]:
        validate_canvas(self.canvas_width, self.canvas_height)
        if self.bbox is None:
            raise ConfigurationError("Bounding box was never configured.")
        self.bbox.validate()
        return self.canvas_width, self.canvas_height, self.bbox  # type: ignore[return-value]

    def project(self, x: float, y: float) -> tuple[float, float]:
        """Map a real-world coordinate to pixel space.

        Row 0 is the top of the raster, so y is flipped.

        Raises:
            ConfigurationError: If canvas or bbox are missing or degenerate.
        """
        width, height, bbox = self._projection()
        return (
            (x - bbox.xmin) / bbox.width * width,
            (bbox.ymax - y) / bbox.height * height,
        )

    def project_path(self, path: Sequence[Point]) -> np.ndarray:
        """Project a whole path; returns an ``(n, 2)`` array of pixel coordinates."""
        width, height, bbox = self._projection()
        return _project_coords(path, width, height, bbox)

    def render(
        self,
        output_file: str | Path | None = None,
        *,
        canvas: Canvas | None = None,
        show_progress: bool = True,
    ) -> Any:
        """Prepare, sort and draw every feature.

        Args:
            output_file: Where to encode the raster. Nothing is written when
                None, or when any step fails.
            canvas: Surface to draw on; a new one from the canvas factory
                when omitted.
            show_progress: Whether to display a progress bar (TTY only).

        Returns:
            The finished raster (``canvas.image``).

        Raises:
            ConfigurationError: Before any data source is read.
            StylingError: If a style function fails on a record.
        """
        config = self.to_config()
        background = resolve_color(config.background)

        self.reset()
        logger.info("Preparing %d symbolizers...", len(self.symbolizers))
        show_progress = show_progress and sys.stderr.isatty()
        with tqdm(
            total=len(self.symbolizers),
            desc="Preparing symbolizers",
            unit="symbolizer",
            disable=not show_progress,
        ) as pbar:
            for symbolizer in self.symbolizers:
                pbar.set_description(f"Preparing {symbolizer.name}")
                symbolizer.prepare(self)
                pbar.update(1)

        self._features = sort_features(self._features, config.order_dimensions)
        logger.info(
            "Drawing %d features ordered by %s...",
            len(self._features),
            ", ".join(config.order_dimensions),
        )

        if canvas is None:
            canvas = self._canvas_factory(config.canvas_width, config.canvas_height)
        canvas.fill_background(background)

        segments = 0
        for feature in self._features:
            segments += _draw_feature(
                canvas,
                feature,
                config.canvas_width,
                config.canvas_height,
                config.bbox,
            )
        logger.debug("Drew %d segments", segments)

        if output_file is not None:
            logger.info("Saving to %s...", output_file)
            canvas.encode(Path(output_file))
            logger.info("Done! Map saved as %s", output_file)

        return canvas.image


def _project_coords(path: Sequence[Point], width: int, height: int, bbox: BBox) -> np.ndarray:
    coords = np.asarray(path, dtype=float).reshape(-1, 2)
    pixel_x = (coords[:, 0] - bbox.xmin) / bbox.width * width
    pixel_y = (bbox.ymax - coords[:, 1]) / bbox.height * height
    return np.column_stack((pixel_x, pixel_y))


def _draw_feature(canvas: Canvas, feature: Feature, width: int, height: int, bbox: BBox) -> int:
    """Draw every segment of a feature; returns the number of segments drawn."""
    segments = 0
    for path in feature.geometry:
        if len(path) < 2:
            continue
        points = _project_coords(path, width, height, bbox).tolist()
        for (x0, y0), (x1, y1) in zip(points[:-1], points[1:]):
            canvas.draw_line(x0, y0, x1, y1, feature.color, feature.width)
            segments += 1
    return segments


def render_map(
    config: RenderConfig,
    symbolizers: Iterable[Symbolizer],
    output_file: str | Path | None = None,
    show_progress: bool = True,
) -> Any:
    """Render symbolizers with a RenderConfig.

    This is a convenience function that wraps Map.

    Args:
        config: Canvas, bbox, ordering, background and default output path.
        symbolizers: Symbolizers to attach, in order.
        output_file: Overrides ``config.output_path``.
        show_progress: Whether to display a progress bar (TTY only).

    Returns:
        The finished raster.
    """
    config.validate()
    output_file = output_file if output_file is not None else config.output_path
    if output_file is not None:
        Path(output_file).parent.mkdir(parents=True, exist_ok=True)

    map_ = Map.from_config(config)
    for symbolizer in symbolizers:
        map_.attach(symbolizer)
    return map_.render(output_file, show_progress=show_progress)
