"""
Filter Primitives
=================
Stateless pixel transforms. Every filter exposes ``apply(buffer)`` and
returns a new, independently owned PixelBuffer.

- equalization : HistogramEqualizer, AdaptiveEqualizer (CLAHE)
- convolution  : GaussianBlur, BoxBlur, SharpenKernel
- edges        : SobelEdge, CannyEdge
"""

from .equalization import HistogramEqualizer, AdaptiveEqualizer
from .convolution import GaussianBlur, BoxBlur, SharpenKernel
from .edges import SobelEdge, CannyEdge

__all__ = [
    'HistogramEqualizer',
    'AdaptiveEqualizer',
    'GaussianBlur',
    'BoxBlur',
    'SharpenKernel',
    'SobelEdge',
    'CannyEdge',
]
