"""
Recompute Controller
====================
Owns the working session: the untouched original image, the current filter
configuration and the last good processed result.

Every configuration change recomputes from the original. Requests are
stamped with a generation number; a recompute commits its result only if
no newer request arrived while it was running. Stale results are dropped.

Failures never clear what is on screen: the previous configuration,
processed image and histograms stay in place and the error is re-raised
for the caller to report.
"""

import logging
import threading
from dataclasses import dataclass, replace

from visionlab.core.buffer import PixelBuffer
from visionlab.core.errors import InvalidConfig
from visionlab.core.histogram import Histogram, HistogramCalculator
from visionlab.core.pipeline import DEFAULT_CONFIG, FilterConfig, FilterPipeline, active_stages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session at one point in time."""
    original: PixelBuffer | None
    processed: PixelBuffer | None
    config: FilterConfig
    original_histogram: Histogram | None
    processed_histogram: Histogram | None
    generation: int
    last_error: str | None = None

    @property
    def has_image(self) -> bool:
        return self.original is not None

    @property
    def applied_filters(self) -> list[str]:
        return active_stages(self.config) if self.processed is not None else []


@dataclass(frozen=True)
class RecomputeOutcome:
    """Result of one recompute request."""
    generation: int
    committed: bool
    snapshot: SessionSnapshot

    @property
    def superseded(self) -> bool:
        return not self.committed


class RecomputeController:
    """
    Serializes recomputes of one image session by request supersession.

    Only the committed state is shared between threads; it is swapped
    under a short lock. The pipeline itself always runs outside the lock.
    """

    def __init__(
        self,
        pipeline: FilterPipeline | None = None,
        calculator: HistogramCalculator | None = None
    ):
        self.pipeline = pipeline or FilterPipeline()
        self.calculator = calculator or HistogramCalculator()
        self._lock = threading.Lock()
        self._generation = 0
        self._state = SessionSnapshot(
            original=None,
            processed=None,
            config=DEFAULT_CONFIG,
            original_histogram=None,
            processed_histogram=None,
            generation=0
        )

    # =========================================================================
    # STATE ACCESS
    # =========================================================================

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self._state

    @property
    def config(self) -> FilterConfig:
        return self.snapshot().config

    @property
    def is_ready(self) -> bool:
        return self.pipeline.is_ready

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def load_image(self, image: PixelBuffer) -> RecomputeOutcome:
        """
        Replace the original image, reset the configuration to defaults and
        recompute.
        """
        original_histogram = self.calculator.compute(image)

        with self._lock:
            generation = self._next_generation()
            self._state = SessionSnapshot(
                original=image,
                processed=None,
                config=DEFAULT_CONFIG,
                original_histogram=original_histogram,
                processed_histogram=None,
                generation=generation
            )

        logger.info(f"Loaded image {image.width}x{image.height} (generation {generation})")
        return self.update_config(DEFAULT_CONFIG)

    def update_config(self, config: FilterConfig) -> RecomputeOutcome:
        """
        Replace the configuration and recompute from the original image.

        Raises:
            InvalidConfig: parameter outside its range (state unchanged)
            EngineNotReady: backend not initialized (state unchanged)
        """
        try:
            config.validate()
        except InvalidConfig as e:
            logger.warning(f"Rejected configuration: {e}")
            with self._lock:
                self._state = self._replace_state(last_error=str(e))
            raise

        with self._lock:
            generation = self._next_generation()
            original = self._state.original

            if original is None:
                self._state = self._replace_state(config=config, generation=generation)
                return RecomputeOutcome(generation, committed=True, snapshot=self._state)

        try:
            processed = self.pipeline.apply(original, config)
            processed_histogram = self.calculator.compute(processed)
        except Exception as e:
            logger.warning(f"Recompute {generation} failed: {e}")
            with self._lock:
                if generation == self._generation:
                    self._state = self._replace_state(last_error=str(e))
            raise

        with self._lock:
            if generation != self._generation or self._state.original is not original:
                logger.debug(f"Recompute {generation} superseded by {self._generation}, discarding")
                return RecomputeOutcome(generation, committed=False, snapshot=self._state)

            self._state = self._replace_state(
                processed=processed,
                config=config,
                processed_histogram=processed_histogram,
                generation=generation,
                last_error=None
            )
            return RecomputeOutcome(generation, committed=True, snapshot=self._state)

    def reset(self) -> SessionSnapshot:
        """Restore default configuration and clear the processed result."""
        with self._lock:
            generation = self._next_generation()
            self._state = self._replace_state(
                processed=None,
                config=DEFAULT_CONFIG,
                processed_histogram=None,
                generation=generation,
                last_error=None
            )
            logger.info(f"Session reset (generation {generation})")
            return self._state

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _replace_state(self, **changes) -> SessionSnapshot:
        return replace(self._state, **changes)
