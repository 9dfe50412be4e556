"""Tests for the recompute controller."""

import pytest

from visionlab.core.buffer import PixelBuffer
from visionlab.core.errors import EngineNotReady, InvalidConfig
from visionlab.core.filters import SharpenKernel
from visionlab.core.pipeline import DEFAULT_CONFIG, FilterPipeline, ProcessingBackend
from visionlab.services.session import RecomputeController


@pytest.fixture
def controller(pipeline) -> RecomputeController:
    return RecomputeController(pipeline)


class InterruptingPipeline(FilterPipeline):
    """Pipeline that lets a newer request land while the first one runs."""

    def __init__(self, backend, newer_config):
        super().__init__(backend)
        self.controller = None
        self.newer_config = newer_config
        self.interrupted = False

    def apply(self, source, config):
        if config != DEFAULT_CONFIG and not self.interrupted:
            self.interrupted = True
            self.controller.update_config(self.newer_config)
        return super().apply(source, config)


class TestRecomputeController:

    def test_starts_empty(self, controller):
        snapshot = controller.snapshot()
        assert not snapshot.has_image
        assert snapshot.processed is None
        assert snapshot.config == DEFAULT_CONFIG
        assert snapshot.applied_filters == []

    def test_update_without_image_stores_config(self, controller):
        config = DEFAULT_CONFIG.replace(sharpen=True)
        outcome = controller.update_config(config)

        assert outcome.committed
        assert controller.config == config
        assert controller.snapshot().processed is None

    @pytest.mark.parametrize("changes", [
        {"clahe_tile_size": 5},
        {"canny_edge": True, "canny_threshold1": 200, "canny_threshold2": 100},
    ])
    def test_invalid_config_without_image_rejected(self, controller, changes):
        generation = controller.snapshot().generation

        with pytest.raises(InvalidConfig):
            controller.update_config(DEFAULT_CONFIG.replace(**changes))

        snapshot = controller.snapshot()
        assert snapshot.config == DEFAULT_CONFIG
        assert snapshot.generation == generation
        assert snapshot.last_error is not None

    def test_load_image_resets_config(self, controller, noisy_image):
        controller.update_config(DEFAULT_CONFIG.replace(sharpen=True))
        outcome = controller.load_image(noisy_image)

        assert outcome.committed
        snapshot = outcome.snapshot
        assert snapshot.config == DEFAULT_CONFIG
        assert snapshot.original is noisy_image
        assert snapshot.processed == noisy_image
        assert snapshot.original_histogram == snapshot.processed_histogram

    def test_update_commits_result(self, controller, noisy_image):
        controller.load_image(noisy_image)
        config = DEFAULT_CONFIG.replace(sharpen=True)
        outcome = controller.update_config(config)

        assert outcome.committed
        snapshot = controller.snapshot()
        assert snapshot.config == config
        assert snapshot.processed == SharpenKernel().apply(noisy_image)
        assert snapshot.applied_filters == ["sharpen"]
        assert snapshot.last_error is None
        assert snapshot.generation == outcome.generation

    def test_invalid_config_keeps_last_good(self, controller, noisy_image):
        controller.load_image(noisy_image)
        good = DEFAULT_CONFIG.replace(sharpen=True)
        controller.update_config(good)
        before = controller.snapshot()

        with pytest.raises(InvalidConfig):
            controller.update_config(good.replace(gaussian_kernel_size=8))

        after = controller.snapshot()
        assert after.config == good
        assert after.processed is before.processed
        assert after.processed_histogram is before.processed_histogram
        assert "gaussian_kernel_size" in after.last_error

    def test_next_success_clears_error(self, controller, noisy_image):
        controller.load_image(noisy_image)
        with pytest.raises(InvalidConfig):
            controller.update_config(DEFAULT_CONFIG.replace(clahe_tile_size=3))
        controller.update_config(DEFAULT_CONFIG.replace(clahe=True))
        assert controller.snapshot().last_error is None

    def test_engine_not_ready(self, noisy_image):
        controller = RecomputeController(FilterPipeline(ProcessingBackend()))
        assert not controller.is_ready
        with pytest.raises(EngineNotReady):
            controller.load_image(noisy_image)
        assert controller.snapshot().processed is None
        assert controller.snapshot().last_error is not None

    def test_stale_result_is_discarded(self, backend, noisy_image):
        newer = DEFAULT_CONFIG.replace(gaussian_blur=True)
        pipeline = InterruptingPipeline(backend, newer)
        controller = RecomputeController(pipeline)
        pipeline.controller = controller
        controller.load_image(noisy_image)

        outcome = controller.update_config(DEFAULT_CONFIG.replace(sharpen=True))

        assert outcome.superseded
        snapshot = controller.snapshot()
        assert snapshot.config == newer
        assert snapshot.applied_filters == ["gaussian_blur"]
        assert snapshot.generation > outcome.generation

    def test_new_image_supersedes_running_recompute(self, backend, noisy_image):
        replacement = PixelBuffer.filled(8, 8, 50)

        class SwappingPipeline(FilterPipeline):
            def apply(self, source, config):
                if source is noisy_image and config.sharpen:
                    controller.load_image(replacement)
                return super().apply(source, config)

        controller = RecomputeController(SwappingPipeline(backend))
        controller.load_image(noisy_image)
        outcome = controller.update_config(DEFAULT_CONFIG.replace(sharpen=True))

        assert outcome.superseded
        snapshot = controller.snapshot()
        assert snapshot.original is replacement
        assert snapshot.processed == replacement
        assert snapshot.config == DEFAULT_CONFIG

    def test_reset_clears_processed(self, controller, noisy_image):
        controller.load_image(noisy_image)
        controller.update_config(DEFAULT_CONFIG.replace(canny_edge=True))

        snapshot = controller.reset()
        assert snapshot.config == DEFAULT_CONFIG
        assert snapshot.processed is None
        assert snapshot.processed_histogram is None
        assert snapshot.original is noisy_image

    def test_generations_increase(self, controller, noisy_image):
        first = controller.load_image(noisy_image).generation
        second = controller.update_config(DEFAULT_CONFIG.replace(sharpen=True)).generation
        assert second > first
