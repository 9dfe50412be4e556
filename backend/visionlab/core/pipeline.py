"""
Filter Pipeline
===============
The engine's single entry point: applies the enabled filters, in a fixed
order, to a copy of the source image.

Stage order (never reordered):
    histogram equalization -> CLAHE -> Gaussian blur -> average blur
    -> sharpen -> Sobel edge -> Canny edge

Key Insight:
    Every run starts again from the untouched source. There is no
    incremental update, so two runs with the same source and configuration
    give byte-identical output. When both edge detectors are enabled, Canny
    sees Sobel's edge map, not the original photo.
"""

import logging
import time
from dataclasses import dataclass, field, fields, replace

from visionlab.core.buffer import PixelBuffer
from visionlab.core.errors import EngineNotReady, InvalidConfig
from visionlab.core.histogram import Histogram, HistogramCalculator
from visionlab.core.filters import (
    AdaptiveEqualizer,
    BoxBlur,
    CannyEdge,
    GaussianBlur,
    HistogramEqualizer,
    SharpenKernel,
    SobelEdge,
)
from visionlab.core.filters.convolution import (
    MAX_KERNEL_SIZE,
    MIN_KERNEL_SIZE,
    box_kernel,
    gaussian_kernel,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class ParameterRange:
    """Declared range of one numeric filter parameter."""
    minimum: float
    maximum: float
    step: float = 1
    parity: str | None = None  # "odd", "even" or None

    def check(self, name: str, value) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidConfig(f"{name} must be a number, got {value!r}", field=name)
        if not self.minimum <= value <= self.maximum:
            raise InvalidConfig(
                f"{name}={value} is outside [{self.minimum}, {self.maximum}]", field=name
            )
        if self.parity is not None:
            if value != int(value):
                raise InvalidConfig(f"{name} must be an integer, got {value}", field=name)
            expected = 1 if self.parity == "odd" else 0
            if int(value) % 2 != expected:
                raise InvalidConfig(f"{name} must be {self.parity}, got {value}", field=name)


PARAMETER_RANGES: dict[str, ParameterRange] = {
    "clahe_clip_limit": ParameterRange(1.0, 10.0, step=0.5),
    "clahe_tile_size": ParameterRange(4, 16, step=2, parity="even"),
    "gaussian_kernel_size": ParameterRange(MIN_KERNEL_SIZE, MAX_KERNEL_SIZE, step=2, parity="odd"),
    "average_kernel_size": ParameterRange(MIN_KERNEL_SIZE, MAX_KERNEL_SIZE, step=2, parity="odd"),
    "canny_threshold1": ParameterRange(0, 200, step=10),
    "canny_threshold2": ParameterRange(0, 300, step=10),
}


@dataclass(frozen=True)
class FilterConfig:
    """
    Immutable set of filter toggles and parameters.

    Edits never mutate a config: ``replace`` returns a new one.
    """
    histogram_equalization: bool = False

    clahe: bool = False
    clahe_clip_limit: float = 2.0
    clahe_tile_size: int = 8

    gaussian_blur: bool = False
    gaussian_kernel_size: int = 5

    average_blur: bool = False
    average_kernel_size: int = 5

    sharpen: bool = False

    sobel_edge: bool = False

    canny_edge: bool = False
    canny_threshold1: int = 50
    canny_threshold2: int = 150

    def replace(self, **changes) -> "FilterConfig":
        return replace(self, **changes)

    def validate(self) -> None:
        """
        Check every numeric parameter against its declared range.

        The Canny threshold ordering is only enforced while Canny is
        enabled, since the two sliders are edited one at a time.

        Raises:
            InvalidConfig: on the first offending parameter
        """
        for name, declared in PARAMETER_RANGES.items():
            declared.check(name, getattr(self, name))

        if self.canny_edge and self.canny_threshold2 < self.canny_threshold1:
            raise InvalidConfig(
                f"canny_threshold2 ({self.canny_threshold2}) must not be below "
                f"canny_threshold1 ({self.canny_threshold1})",
                field="canny_threshold2"
            )

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def has_active_filters(self) -> bool:
        return any(getattr(self, stage.toggle) for stage in STAGES)


DEFAULT_CONFIG = FilterConfig()


# =============================================================================
# STAGES
# =============================================================================

@dataclass(frozen=True)
class Stage:
    """One pipeline stage: its toggle field and how to build its filter."""
    name: str
    toggle: str
    description: str
    parameters: tuple[str, ...] = ()

    def build(self, config: FilterConfig):
        return STAGE_FACTORIES[self.name](config)


STAGES: tuple[Stage, ...] = (
    Stage("histogram_equalization", "histogram_equalization",
          "Global histogram equalization of the luma plane"),
    Stage("clahe", "clahe",
          "Contrast limited adaptive histogram equalization",
          ("clahe_clip_limit", "clahe_tile_size")),
    Stage("gaussian_blur", "gaussian_blur",
          "Separable Gaussian smoothing",
          ("gaussian_kernel_size",)),
    Stage("average_blur", "average_blur",
          "Box (mean) blur",
          ("average_kernel_size",)),
    Stage("sharpen", "sharpen",
          "3x3 sharpening kernel"),
    Stage("sobel_edge", "sobel_edge",
          "Sobel gradient magnitude"),
    Stage("canny_edge", "canny_edge",
          "Canny edge detector with hysteresis",
          ("canny_threshold1", "canny_threshold2")),
)

STAGE_FACTORIES = {
    "histogram_equalization": lambda config: HistogramEqualizer(),
    "clahe": lambda config: AdaptiveEqualizer(
        clip_limit=config.clahe_clip_limit,
        tile_grid_size=int(config.clahe_tile_size)
    ),
    "gaussian_blur": lambda config: GaussianBlur(int(config.gaussian_kernel_size)),
    "average_blur": lambda config: BoxBlur(int(config.average_kernel_size)),
    "sharpen": lambda config: SharpenKernel(),
    "sobel_edge": lambda config: SobelEdge(),
    "canny_edge": lambda config: CannyEdge(
        low_threshold=config.canny_threshold1,
        high_threshold=config.canny_threshold2
    ),
}


def active_stages(config: FilterConfig) -> list[str]:
    """Names of the enabled stages, in execution order."""
    return [stage.name for stage in STAGES if getattr(config, stage.toggle)]


# =============================================================================
# BACKEND READINESS
# =============================================================================

class ProcessingBackend:
    """
    Readiness gate for the filter engine.

    ``initialize`` warms the cached Gaussian and box kernels for every legal
    kernel size; until it has run, the pipeline refuses to process anything.
    """

    def __init__(self):
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    def initialize(self) -> "ProcessingBackend":
        if self._ready:
            return self

        sizes = range(MIN_KERNEL_SIZE, MAX_KERNEL_SIZE + 1, 2)
        for k in sizes:
            gaussian_kernel(k)
            box_kernel(k)
        self._ready = True
        logger.info(f"Processing backend ready ({len(sizes)} kernel sizes)")
        return self


default_backend = ProcessingBackend()


# =============================================================================
# PIPELINE
# =============================================================================

@dataclass
class PipelineResult:
    """Container for pipeline output with metadata."""
    image: PixelBuffer
    applied_filters: list[str]
    histogram_before: Histogram
    histogram_after: Histogram
    processing_time_seconds: float = 0.0
    config: FilterConfig = field(default_factory=FilterConfig)


class FilterPipeline:
    """
    Applies the enabled stages of a FilterConfig to a source image.

    The pipeline owns no image between calls; ``apply`` is a pure function
    of (source, config).

    Example:
        >>> pipeline = FilterPipeline(ProcessingBackend().initialize())
        >>> processed = pipeline.apply(image, FilterConfig(clahe=True))
    """

    def __init__(self, backend: ProcessingBackend | None = None):
        self.backend = backend if backend is not None else default_backend
        self.histograms = HistogramCalculator()

    @property
    def is_ready(self) -> bool:
        return self.backend.is_ready

    def apply(self, source: PixelBuffer, config: FilterConfig) -> PixelBuffer:
        """
        Run every enabled stage, in order, on a copy of ``source``.

        Raises:
            EngineNotReady: if the backend has not been initialized
            InvalidConfig: if a parameter is outside its declared range
        """
        if not self.backend.is_ready:
            raise EngineNotReady("Processing backend is not initialized")

        config.validate()

        result = source.copy()
        for stage in STAGES:
            if not getattr(config, stage.toggle):
                continue
            logger.debug(f"Applying stage: {stage.name}")
            result = stage.build(config).apply(result)

        return result

    def process(self, source: PixelBuffer, config: FilterConfig) -> PipelineResult:
        """Run the pipeline and collect before/after histograms."""
        start_time = time.perf_counter()

        histogram_before = self.histograms.compute(source)
        processed = self.apply(source, config)
        histogram_after = self.histograms.compute(processed)

        return PipelineResult(
            image=processed,
            applied_filters=active_stages(config),
            histogram_before=histogram_before,
            histogram_after=histogram_after,
            processing_time_seconds=time.perf_counter() - start_time,
            config=config
        )
