"""
Engine Errors
=============
Exception hierarchy shared by the filter engine and the API layer.

None of these are fatal to the host process: a failed recompute leaves the
previously committed result in place and the caller reports the failure.
"""


class VisionLabError(Exception):
    """Base class for all engine errors."""


class InvalidConfig(VisionLabError, ValueError):
    """A filter parameter is outside its declared range."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class EngineNotReady(VisionLabError, RuntimeError):
    """The processing backend has not finished initializing."""


class DecodeFailure(VisionLabError, ValueError):
    """Uploaded bytes could not be turned into a pixel buffer."""
