"""
Edge Detection
==============
Sobel gradient magnitude and the Canny edge detector.

Both run on the luma plane and re-expand their single-channel result to the
input's channel layout.

Canny stages:
1. 3x3 Gaussian smoothing
2. Sobel gradients, L1 magnitude |Gx| + |Gy| and direction
3. Non-maximum suppression along the gradient direction (4 sectors)
4. Double threshold into strong / weak / suppressed
5. Hysteresis: weak pixels survive only when 8-connected to a strong one
"""

import numpy as np
from scipy import ndimage

from visionlab.core.buffer import PixelBuffer, expand_luma, saturate, to_luma
from visionlab.core.errors import InvalidConfig
from visionlab.core.filters.convolution import BORDER_MODE, convolve_separable, gaussian_kernel


SOBEL_SMOOTH = np.array([1.0, 2.0, 1.0])
SOBEL_DERIVATIVE = np.array([-1.0, 0.0, 1.0])

EIGHT_CONNECTED = np.ones((3, 3), dtype=bool)

EDGE = 255


def sobel_gradients(plane: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Horizontal and vertical 3x3 Sobel responses of a float plane.

    Gx = [[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], Gy is its transpose.
    """
    gx = ndimage.correlate1d(plane, SOBEL_DERIVATIVE, axis=1, mode=BORDER_MODE)
    gx = ndimage.correlate1d(gx, SOBEL_SMOOTH, axis=0, mode=BORDER_MODE)
    gy = ndimage.correlate1d(plane, SOBEL_DERIVATIVE, axis=0, mode=BORDER_MODE)
    gy = ndimage.correlate1d(gy, SOBEL_SMOOTH, axis=1, mode=BORDER_MODE)
    return gx, gy


class SobelEdge:
    """
    Sobel gradient magnitude: 0.5 * |Gx| + 0.5 * |Gy|.

    Each absolute gradient is saturated to 255 before the two are blended.
    """

    def apply(self, buffer: PixelBuffer) -> PixelBuffer:
        plane = to_luma(buffer).astype(np.float64)
        gx, gy = sobel_gradients(plane)

        abs_gx = np.minimum(np.abs(gx), 255.0)
        abs_gy = np.minimum(np.abs(gy), 255.0)
        magnitude = saturate(0.5 * abs_gx + 0.5 * abs_gy)

        return expand_luma(magnitude, buffer)


class CannyEdge:
    """
    Canny edge detector producing a binary (0 / 255) edge map.

    Args:
        low_threshold: Gradient magnitude above which a pixel is a weak edge
        high_threshold: Gradient magnitude above which a pixel is a strong edge

    Raises:
        InvalidConfig: if high_threshold < low_threshold
    """

    def __init__(self, low_threshold: float = 50, high_threshold: float = 150):
        if high_threshold < low_threshold:
            raise InvalidConfig(
                f"Canny high threshold ({high_threshold}) must not be below "
                f"the low threshold ({low_threshold})",
                field="canny_threshold2"
            )
        self.low_threshold = low_threshold
        self.high_threshold = high_threshold

    def apply(self, buffer: PixelBuffer) -> PixelBuffer:
        edges = self.detect(to_luma(buffer))
        return expand_luma(edges, buffer)

    def detect(self, plane: np.ndarray) -> np.ndarray:
        """Binary edge map (uint8, 0 or 255) of an 8-bit luma plane."""
        smoothed = saturate(convolve_separable(plane.astype(np.float64), gaussian_kernel(3)))
        gx, gy = sobel_gradients(smoothed.astype(np.float64))
        magnitude = np.abs(gx) + np.abs(gy)

        thinned = non_maximum_suppression(magnitude, gx, gy)

        candidates = thinned > self.low_threshold
        strong = thinned > self.high_threshold
        edges = hysteresis(candidates, strong)

        return np.where(edges, EDGE, 0).astype(np.uint8)


def non_maximum_suppression(magnitude: np.ndarray, gx: np.ndarray, gy: np.ndarray) -> np.ndarray:
    """
    Zero every pixel that is not a local maximum along its gradient direction.

    The direction is quantized to 0, 45, 90 or 135 degrees (image rows grow
    downwards). On a plateau only the first pixel along the direction
    survives, so a two-pixel wide ridge thins to one pixel.
    """
    height, width = magnitude.shape
    angle = np.rad2deg(np.arctan2(gy, gx)) % 180.0
    padded = np.pad(magnitude, 1, mode="constant")

    def neighbour(dy: int, dx: int) -> np.ndarray:
        return padded[1 + dy:1 + dy + height, 1 + dx:1 + dx + width]

    sectors = [
        ((angle < 22.5) | (angle >= 157.5), (0, -1), (0, 1)),
        ((angle >= 22.5) & (angle < 67.5), (-1, -1), (1, 1)),
        ((angle >= 67.5) & (angle < 112.5), (-1, 0), (1, 0)),
        ((angle >= 112.5) & (angle < 157.5), (-1, 1), (1, -1)),
    ]

    keep = np.zeros(magnitude.shape, dtype=bool)
    for mask, behind, ahead in sectors:
        is_max = (magnitude > neighbour(*behind)) & (magnitude >= neighbour(*ahead))
        keep |= mask & is_max

    return np.where(keep, magnitude, 0.0)


def hysteresis(candidates: np.ndarray, strong: np.ndarray) -> np.ndarray:
    """
    Keep every 8-connected component of ``candidates`` that contains at
    least one ``strong`` pixel.
    """
    labels, count = ndimage.label(candidates, structure=EIGHT_CONNECTED)
    if count == 0:
        return np.zeros(candidates.shape, dtype=bool)

    connected = np.unique(labels[strong & candidates])
    connected = connected[connected > 0]
    return np.isin(labels, connected)
