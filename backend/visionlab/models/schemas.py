"""
Pydantic Schemas
================
Request and response models for the API.

Filter options travel as camelCase JSON (``claheClipLimit``) and map onto
the snake_case FilterConfig used by the engine.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Literal
from datetime import datetime

from visionlab.core.histogram import Histogram
from visionlab.core.pipeline import FilterConfig


# =========================================================================
# REQUEST MODELS
# =========================================================================

class FilterOptions(BaseModel):
    """Complete filter configuration, replaced wholesale on every edit."""
    histogram_equalization: bool = False

    clahe: bool = False
    clahe_clip_limit: float = Field(default=2.0, ge=1, le=10)
    clahe_tile_size: int = Field(default=8, ge=4, le=16)

    gaussian_blur: bool = False
    gaussian_kernel_size: int = Field(default=5, ge=1, le=15)

    average_blur: bool = False
    average_kernel_size: int = Field(default=5, ge=1, le=15)

    sharpen: bool = False

    sobel_edge: bool = False

    canny_edge: bool = False
    canny_threshold1: int = Field(default=50, ge=0, le=200)
    canny_threshold2: int = Field(default=150, ge=0, le=300)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_config(self) -> FilterConfig:
        return FilterConfig(**self.model_dump())

    @classmethod
    def from_config(cls, config: FilterConfig) -> "FilterOptions":
        return cls(**config.to_dict())


# =========================================================================
# RESPONSE MODELS
# =========================================================================

class HistogramResponse(BaseModel):
    """Per-channel intensity counts (256 bins each)."""
    red: list[int]
    green: list[int]
    blue: list[int]
    total_pixels: int

    @classmethod
    def from_histogram(cls, histogram: Histogram) -> "HistogramResponse":
        return cls(**histogram.to_dict(), total_pixels=histogram.total)


class ImageInfo(BaseModel):
    """Dimensions of a loaded image."""
    width: int
    height: int
    channels: int


class SessionStateResponse(BaseModel):
    """Current session state after an upload, edit or reset."""
    success: bool
    message: str
    has_image: bool
    image: ImageInfo | None = None
    options: FilterOptions
    applied_filters: list[str] = []
    has_processed_image: bool = False
    original_histogram: HistogramResponse | None = None
    processed_histogram: HistogramResponse | None = None
    generation: int
    processing_time_seconds: float | None = None


class ParameterInfo(BaseModel):
    """Declared range of a filter parameter."""
    name: str
    minimum: float
    maximum: float
    step: float
    parity: Literal["odd", "even"] | None = None
    default: float


class FilterInfo(BaseModel):
    """One pipeline stage in the filter catalog."""
    id: str
    order: int
    description: str
    parameters: list[ParameterInfo] = []


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    engine_ready: bool
    timestamp: datetime
