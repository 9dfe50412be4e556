"""
Histogram Calculator
====================
Per-channel intensity counts for the before/after histogram views.
"""

from dataclasses import dataclass

import numpy as np

from visionlab.core.buffer import PixelBuffer


BINS = 256
CHANNEL_NAMES = ("red", "green", "blue")


@dataclass(frozen=True, eq=False)
class Histogram:
    """
    Three 256-bin intensity histograms (R, G, B). Alpha is never counted.

    Invariant: every channel sums to the pixel count of the source buffer.
    """
    red: np.ndarray
    green: np.ndarray
    blue: np.ndarray

    @property
    def channels(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        return (self.red, self.green, self.blue)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.channels[index]

    def __len__(self) -> int:
        return len(CHANNEL_NAMES)

    def __eq__(self, other):
        if not isinstance(other, Histogram):
            return NotImplemented
        return all(np.array_equal(a, b) for a, b in zip(self.channels, other.channels))

    __hash__ = None

    @property
    def total(self) -> int:
        """Pixel count the histogram was built from."""
        return int(self.red.sum())

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {name: channel.tolist() for name, channel in zip(CHANNEL_NAMES, self.channels)}


class HistogramCalculator:
    """
    Builds a Histogram from a PixelBuffer in a single pass per channel.

    Greyscale buffers contribute their single plane to all three channels,
    which is how an RGB display of a grey image would count it.
    """

    def compute(self, buffer: PixelBuffer) -> Histogram:
        counts = []
        for c in range(3):
            channel = 0 if buffer.is_greyscale else c
            plane = buffer.data[:, :, channel].ravel()
            counts.append(np.bincount(plane, minlength=BINS).astype(np.int64))

        return Histogram(red=counts[0], green=counts[1], blue=counts[2])


def compute_histogram(buffer: PixelBuffer) -> Histogram:
    """Convenience wrapper around HistogramCalculator."""
    return HistogramCalculator().compute(buffer)
