"""
Convolution Filters
===================
Gaussian blur, box (average) blur and sharpening.

All three share one convolution core built on ``scipy.ndimage``:

- Blurs are separable: a horizontal 1D pass followed by a vertical one.
- Borders use reflect-101 (scipy ``mode="mirror"``): ``d c b | a b c d | c b a``.
  Edge samples are never mixed with zeros, so edges do not darken.
- Results are rounded half-to-even and saturated to [0, 255].
- Color channels are filtered independently; alpha passes through.
"""

from functools import lru_cache

import numpy as np
from scipy import ndimage

from visionlab.core.buffer import PixelBuffer, map_color_channels


BORDER_MODE = "mirror"

MIN_KERNEL_SIZE = 1
MAX_KERNEL_SIZE = 15

SHARPEN_KERNEL = np.array([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0]
], dtype=np.float64)


def gaussian_sigma(kernel_size: int) -> float:
    """Sigma derived from the kernel extent: 0.3 * ((k - 1) * 0.5 - 1) + 0.8."""
    return 0.3 * ((kernel_size - 1) * 0.5 - 1) + 0.8


@lru_cache(maxsize=None)
def gaussian_kernel(kernel_size: int) -> np.ndarray:
    """
    Normalized 1D Gaussian weights of odd length ``kernel_size``.

    The 2D kernel is the outer product of this vector with itself.
    """
    _check_kernel_size(kernel_size)
    sigma = gaussian_sigma(kernel_size)
    radius = kernel_size // 2
    x = np.arange(-radius, radius + 1, dtype=np.float64)
    kernel = np.exp(-(x * x) / (2.0 * sigma * sigma))
    kernel /= kernel.sum()
    kernel.flags.writeable = False
    return kernel


@lru_cache(maxsize=None)
def box_kernel(kernel_size: int) -> np.ndarray:
    """Uniform 1D weights 1/k (1/k^2 over the square)."""
    _check_kernel_size(kernel_size)
    kernel = np.full(kernel_size, 1.0 / kernel_size, dtype=np.float64)
    kernel.flags.writeable = False
    return kernel


def _check_kernel_size(kernel_size: int) -> None:
    if kernel_size < 1 or kernel_size % 2 == 0:
        raise ValueError(f"Kernel size must be a positive odd integer, got {kernel_size}")


def convolve_separable(plane: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Horizontal then vertical 1D pass over a float plane."""
    rows = ndimage.correlate1d(plane, kernel, axis=1, mode=BORDER_MODE)
    return ndimage.correlate1d(rows, kernel, axis=0, mode=BORDER_MODE)


def convolve_2d(plane: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Full (non-separable) 2D correlation over a float plane."""
    return ndimage.correlate(plane, kernel, mode=BORDER_MODE)


class GaussianBlur:
    """
    Gaussian smoothing with a square odd kernel.

    Args:
        kernel_size: Odd kernel width in pixels (1 leaves the image unchanged)
    """

    def __init__(self, kernel_size: int = 5):
        self.kernel_size = kernel_size
        self.kernel = gaussian_kernel(kernel_size)

    def apply(self, buffer: PixelBuffer) -> PixelBuffer:
        return map_color_channels(buffer, lambda plane: convolve_separable(plane, self.kernel))


class BoxBlur:
    """
    Average blur: every output sample is the mean of its k x k neighbourhood.

    Args:
        kernel_size: Odd kernel width in pixels (1 leaves the image unchanged)
    """

    def __init__(self, kernel_size: int = 5):
        self.kernel_size = kernel_size
        self.kernel = box_kernel(kernel_size)

    def apply(self, buffer: PixelBuffer) -> PixelBuffer:
        return map_color_channels(buffer, lambda plane: convolve_separable(plane, self.kernel))


class SharpenKernel:
    """Fixed 3x3 sharpening kernel applied per color channel."""

    kernel = SHARPEN_KERNEL

    def apply(self, buffer: PixelBuffer) -> PixelBuffer:
        return map_color_channels(buffer, lambda plane: convolve_2d(plane, self.kernel))
