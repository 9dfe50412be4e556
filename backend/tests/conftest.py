"""
Shared fixtures for the filter engine tests.

Tests verify actual pixel values to ensure filters work correctly.
"""

import io

import numpy as np
import pytest
from PIL import Image

from visionlab.core.buffer import PixelBuffer
from visionlab.core.pipeline import FilterPipeline, ProcessingBackend


@pytest.fixture
def backend() -> ProcessingBackend:
    """Initialized processing backend."""
    return ProcessingBackend().initialize()


@pytest.fixture
def pipeline(backend) -> FilterPipeline:
    return FilterPipeline(backend)


@pytest.fixture
def step_image() -> PixelBuffer:
    """4x4 greyscale: two black columns, then two white columns."""
    rows = [[0, 0, 255, 255]] * 4
    return PixelBuffer.from_array(np.array(rows, dtype=np.uint8))


@pytest.fixture
def gradient_image() -> PixelBuffer:
    """64x48 RGBA horizontal gradient (black to white), opaque."""
    pixels = np.zeros((48, 64, 3), dtype=np.uint8)
    for x in range(64):
        pixels[:, x, :] = x * 255 // 63
    return PixelBuffer.from_array(pixels)


@pytest.fixture
def noisy_image() -> PixelBuffer:
    """40x30 RGBA with random colors and a non-trivial alpha channel."""
    rng = np.random.default_rng(1234)
    pixels = rng.integers(0, 256, size=(30, 40, 4), dtype=np.uint8)
    return PixelBuffer(pixels)


@pytest.fixture
def square_image() -> PixelBuffer:
    """32x32 greyscale: bright square on a dark background."""
    pixels = np.full((32, 32), 30, dtype=np.uint8)
    pixels[8:24, 8:24] = 220
    return PixelBuffer.from_array(pixels)


@pytest.fixture
def png_bytes():
    """Encode a numpy array as PNG bytes."""
    def _encode(array: np.ndarray) -> bytes:
        out = io.BytesIO()
        Image.fromarray(array).save(out, format="PNG")
        return out.getvalue()
    return _encode
