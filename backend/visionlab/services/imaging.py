"""
Image Ingestion
===============
Decode uploaded image bytes into a PixelBuffer and encode buffers as PNG.

Greyscale (mode ``L``) uploads stay single-channel; every other mode
(palette, RGB, CMYK, 16-bit...) is converted to RGBA.
"""

import io
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

from visionlab.core.buffer import PixelBuffer
from visionlab.core.errors import DecodeFailure

logger = logging.getLogger(__name__)


def decode_image(data: bytes, max_bytes: int | None = None) -> PixelBuffer:
    """
    Decode an encoded image (PNG, JPEG, BMP, TIFF, ...) into a PixelBuffer.

    Args:
        data: Raw file contents
        max_bytes: Optional upper bound on the encoded size

    Raises:
        DecodeFailure: empty, oversized or undecodable input
    """
    if not data:
        raise DecodeFailure("Uploaded file is empty")

    if max_bytes is not None and len(data) > max_bytes:
        raise DecodeFailure(
            f"Uploaded file is {len(data)} bytes, limit is {max_bytes} bytes"
        )

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.mode != "L":
                image = image.convert("RGBA")
            array = np.array(image, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeFailure(f"Could not decode image: {e}") from e

    buffer = PixelBuffer.from_array(array)
    logger.info(f"Decoded image: {buffer.width}x{buffer.height}, channels={buffer.channels}")
    return buffer


def encode_png(buffer: PixelBuffer) -> io.BytesIO:
    """Encode a buffer as PNG into a rewound in-memory stream."""
    if buffer.is_greyscale:
        image = Image.fromarray(buffer.data[:, :, 0].copy())
    else:
        image = Image.fromarray(buffer.data.copy())

    out = io.BytesIO()
    image.save(out, format="PNG")
    out.seek(0)
    return out
