"""
Histogram Equalization
======================
Global and contrast-limited adaptive (CLAHE) equalization of the luma plane.

Both filters build a 256-entry remap table from a cumulative distribution
and look every pixel up in it. CLAHE does this per tile, clips each tile's
histogram first, then blends the four nearest tile tables bilinearly so that
tile boundaries do not show.
"""

import logging

import numpy as np

from visionlab.core.buffer import PixelBuffer, expand_luma, saturate, to_luma
from visionlab.core.histogram import BINS

logger = logging.getLogger(__name__)


def equalization_table(hist: np.ndarray) -> np.ndarray:
    """
    Monotonic remap table from a 256-bin histogram.

    lut[v] = round((cdf(v) - cdf_min) / (total - cdf_min) * 255)

    A histogram with a single occupied bin yields the identity table.
    """
    cdf = np.cumsum(hist)
    total = int(cdf[-1])
    occupied = np.flatnonzero(hist)
    if total == 0 or len(occupied) == 0:
        return np.arange(BINS, dtype=np.uint8)

    cdf_min = int(cdf[occupied[0]])
    if total == cdf_min:
        return np.arange(BINS, dtype=np.uint8)

    return saturate((cdf - cdf_min) / (total - cdf_min) * 255.0)


class HistogramEqualizer:
    """Global histogram equalization. Deterministic, no parameters."""

    def apply(self, buffer: PixelBuffer) -> PixelBuffer:
        plane = to_luma(buffer)
        hist = np.bincount(plane.ravel(), minlength=BINS)
        lut = equalization_table(hist)
        return expand_luma(lut[plane], buffer)


class AdaptiveEqualizer:
    """
    Contrast Limited Adaptive Histogram Equalization (CLAHE).

    Args:
        clip_limit: Contrast limit relative to a flat histogram (1-10)
        tile_grid_size: Number of tiles along each axis (4-16)

    Degenerate tiling:
        When the grid asks for more tiles than the image has pixels along an
        axis, the grid is shrunk to the image size on that axis, so every
        tile holds at least one pixel.
    """

    def __init__(self, clip_limit: float = 2.0, tile_grid_size: int = 8):
        self.clip_limit = clip_limit
        self.tile_grid_size = tile_grid_size

    def apply(self, buffer: PixelBuffer) -> PixelBuffer:
        plane = to_luma(buffer)
        height, width = plane.shape

        tiles_y = min(self.tile_grid_size, height)
        tiles_x = min(self.tile_grid_size, width)
        if (tiles_y, tiles_x) != (self.tile_grid_size, self.tile_grid_size):
            logger.debug(
                f"CLAHE grid {self.tile_grid_size}x{self.tile_grid_size} clamped to "
                f"{tiles_x}x{tiles_y} for {width}x{height} image"
            )

        row_edges = _tile_edges(height, tiles_y)
        col_edges = _tile_edges(width, tiles_x)

        luts = np.empty((tiles_y, tiles_x, BINS), dtype=np.float64)
        for ty in range(tiles_y):
            for tx in range(tiles_x):
                tile = plane[row_edges[ty]:row_edges[ty + 1], col_edges[tx]:col_edges[tx + 1]]
                luts[ty, tx] = self._tile_table(tile)

        y0, y1, fy = _interpolation_axis(height, row_edges)
        x0, x1, fx = _interpolation_axis(width, col_edges)

        fy = fy[:, np.newaxis]
        fx = fx[np.newaxis, :]
        top = (1 - fx) * luts[y0[:, None], x0[None, :], plane] + fx * luts[y0[:, None], x1[None, :], plane]
        bottom = (1 - fx) * luts[y1[:, None], x0[None, :], plane] + fx * luts[y1[:, None], x1[None, :], plane]
        result = (1 - fy) * top + fy * bottom

        return expand_luma(saturate(result), buffer)

    def _tile_table(self, tile: np.ndarray) -> np.ndarray:
        """Clipped-CDF remap table for one tile."""
        area = tile.size
        hist = np.bincount(tile.ravel(), minlength=BINS).astype(np.int64)

        limit = max(int(self.clip_limit * area / BINS), 1)
        excess = int(np.maximum(hist - limit, 0).sum())
        hist = np.minimum(hist, limit)

        # Spread the clipped excess: an equal batch to every bin, the
        # remainder one count at a time at a regular stride.
        batch, residual = divmod(excess, BINS)
        hist += batch
        if residual:
            stride = max(BINS // residual, 1)
            hist[np.arange(0, BINS, stride)[:residual]] += 1

        cdf = np.cumsum(hist)
        return np.clip(np.rint(cdf * (255.0 / area)), 0, 255)


def _tile_edges(length: int, tiles: int) -> np.ndarray:
    """Boundaries of ``tiles`` roughly equal spans covering ``length``."""
    return (np.arange(tiles + 1) * length) // tiles


def _interpolation_axis(length: int, edges: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    For each pixel along one axis, the two neighbouring tile indices and the
    weight of the second one.

    Pixels before the first tile center or after the last one clamp to that
    tile (weight 0).
    """
    centers = (edges[:-1] + edges[1:]) / 2.0
    positions = np.arange(length) + 0.5
    tile_pos = np.interp(positions, centers, np.arange(len(centers), dtype=np.float64))

    first = np.floor(tile_pos).astype(np.intp)
    second = np.minimum(first + 1, len(centers) - 1)
    weight = tile_pos - first
    return first, second, weight
