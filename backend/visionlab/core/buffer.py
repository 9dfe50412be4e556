"""
Pixel Buffer
============
In-memory raster representation shared by every filter.

A buffer wraps a read-only ``uint8`` array of shape ``(H, W, C)`` where C is
1 (greyscale) or 4 (RGBA). Filters never write into a buffer they receive;
each one builds a fresh array and wraps it in a new buffer.

Key Insight:
    The single-channel filters (equalization, CLAHE, Sobel, Canny) operate
    on luma. ``to_luma`` collapses RGBA with the broadcast weights and
    ``expand_luma`` writes the result back into R/G/B while keeping the
    source alpha untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

import numpy as np


GREYSCALE = 1
RGBA = 4
SUPPORTED_CHANNELS = (GREYSCALE, RGBA)

# ITU-R BT.601 luma weights in 14-bit fixed point (0.299, 0.587, 0.114)
LUMA_SHIFT = 14
LUMA_WEIGHTS = (4899, 9617, 1868)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    Row-major 8-bit raster.

    The buffer takes ownership of ``data`` and marks it read-only.

    Attributes:
        data: uint8 array of shape (height, width, channels)
    """
    data: np.ndarray

    def __post_init__(self):
        data = self.data
        if not isinstance(data, np.ndarray) or data.dtype != np.uint8:
            raise TypeError("PixelBuffer data must be a uint8 numpy array")
        if data.ndim != 3:
            raise ValueError(f"PixelBuffer data must be (H, W, C), got shape {data.shape}")
        height, width, channels = data.shape
        if height < 1 or width < 1:
            raise ValueError(f"Dimensions must be positive, got {width}x{height}")
        if channels not in SUPPORTED_CHANNELS:
            raise ValueError(f"Unsupported channel count: {channels} (expected 1 or 4)")
        data.flags.writeable = False

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_array(cls, array: np.ndarray) -> PixelBuffer:
        """
        Build a buffer from any 8-bit image array.

        2D arrays become greyscale, RGB arrays gain an opaque alpha channel.
        The input is always copied.
        """
        array = np.asarray(array)
        if array.dtype != np.uint8:
            raise TypeError(f"Expected uint8 samples, got {array.dtype}")

        if array.ndim == 2:
            return cls(array[:, :, np.newaxis].copy())

        if array.ndim == 3 and array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            return cls(np.concatenate([array, alpha], axis=2))

        return cls(np.array(array, dtype=np.uint8, copy=True))

    @classmethod
    def from_samples(
        cls,
        width: int,
        height: int,
        channels: int,
        samples: Sequence[int] | bytes | np.ndarray
    ) -> PixelBuffer:
        """Build a buffer from a flat row-major sample sequence."""
        flat = np.asarray(bytearray(samples) if isinstance(samples, bytes) else samples)
        expected = width * height * channels
        if flat.size != expected:
            raise ValueError(
                f"Sample count {flat.size} does not match {width}x{height}x{channels} = {expected}"
            )
        if flat.size and (flat.min() < 0 or flat.max() > 255):
            raise ValueError("Samples must lie in [0, 255]")
        return cls(flat.astype(np.uint8).reshape(height, width, channels))

    @classmethod
    def filled(cls, width: int, height: int, value: int, channels: int = RGBA) -> PixelBuffer:
        """Constant-intensity buffer; alpha (if present) is opaque."""
        data = np.full((height, width, channels), value, dtype=np.uint8)
        if channels == RGBA:
            data[:, :, 3] = 255
        return cls(data)

    # -------------------------------------------------------------------------
    # Shape
    # -------------------------------------------------------------------------

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def channels(self) -> int:
        return self.data.shape[2]

    @property
    def is_greyscale(self) -> bool:
        return self.channels == GREYSCALE

    @property
    def samples(self) -> bytes:
        """Row-major sample bytes, length W*H*C."""
        return self.data.tobytes()

    def copy(self) -> PixelBuffer:
        return PixelBuffer(self.data.copy())

    def __eq__(self, other):
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.data.shape == other.data.shape and np.array_equal(self.data, other.data)

    __hash__ = None

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height}, channels={self.channels})"


# =============================================================================
# COLOR-PLANE REDUCTION
# =============================================================================

def to_luma(buffer: PixelBuffer) -> np.ndarray:
    """
    Collapse a buffer to a single 8-bit luma plane of shape (H, W).

    Greyscale buffers are returned as-is (as a writable copy).
    """
    if buffer.is_greyscale:
        return buffer.data[:, :, 0].copy()

    rgb = buffer.data[:, :, :3].astype(np.int32)
    r_weight, g_weight, b_weight = LUMA_WEIGHTS
    luma = (
        rgb[:, :, 0] * r_weight
        + rgb[:, :, 1] * g_weight
        + rgb[:, :, 2] * b_weight
        + (1 << (LUMA_SHIFT - 1))
    ) >> LUMA_SHIFT
    return luma.astype(np.uint8)


def expand_luma(plane: np.ndarray, like: PixelBuffer) -> PixelBuffer:
    """
    Re-expand a luma plane to the channel layout of ``like``.

    R, G and B receive the plane; alpha is copied from ``like``.
    """
    plane = plane.astype(np.uint8, copy=False)
    if like.is_greyscale:
        return PixelBuffer(plane[:, :, np.newaxis].copy())

    data = np.empty_like(like.data)
    data[:, :, 0] = plane
    data[:, :, 1] = plane
    data[:, :, 2] = plane
    data[:, :, 3] = like.data[:, :, 3]
    return PixelBuffer(data)


def map_color_channels(
    buffer: PixelBuffer,
    transform: Callable[[np.ndarray], np.ndarray]
) -> PixelBuffer:
    """
    Apply ``transform`` to each color channel independently.

    ``transform`` receives a float64 (H, W) plane and returns a float plane;
    results are rounded and saturated to uint8. Alpha passes through.
    """
    data = np.empty_like(buffer.data)
    color_channels = 1 if buffer.is_greyscale else 3

    for c in range(color_channels):
        plane = buffer.data[:, :, c].astype(np.float64)
        data[:, :, c] = saturate(transform(plane))

    if not buffer.is_greyscale:
        data[:, :, 3] = buffer.data[:, :, 3]

    return PixelBuffer(data)


def saturate(values: np.ndarray) -> np.ndarray:
    """Round half-to-even and clamp to [0, 255] as uint8."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)
