"""Tests for FilterConfig validation and the filter pipeline."""

import dataclasses

import numpy as np
import pytest

from visionlab.core.errors import EngineNotReady, InvalidConfig
from visionlab.core.filters import (
    AdaptiveEqualizer,
    BoxBlur,
    CannyEdge,
    GaussianBlur,
    HistogramEqualizer,
    SharpenKernel,
    SobelEdge,
)
from visionlab.core.filters.convolution import box_kernel, gaussian_kernel
from visionlab.core.pipeline import (
    DEFAULT_CONFIG,
    STAGES,
    FilterConfig,
    FilterPipeline,
    ProcessingBackend,
    active_stages,
)


ALL_ON = FilterConfig(
    histogram_equalization=True,
    clahe=True,
    gaussian_blur=True,
    average_blur=True,
    sharpen=True,
    sobel_edge=True,
    canny_edge=True,
)


class TestFilterConfig:

    def test_defaults(self):
        config = FilterConfig()
        assert not config.has_active_filters
        assert config.clahe_clip_limit == 2.0
        assert config.clahe_tile_size == 8
        assert config.gaussian_kernel_size == 5
        assert config.average_kernel_size == 5
        assert (config.canny_threshold1, config.canny_threshold2) == (50, 150)
        config.validate()

    def test_replace_returns_new_config(self):
        updated = DEFAULT_CONFIG.replace(sharpen=True)
        assert updated.sharpen
        assert not DEFAULT_CONFIG.sharpen
        with pytest.raises(dataclasses.FrozenInstanceError):
            updated.sharpen = False

    @pytest.mark.parametrize("changes, field", [
        ({"clahe_clip_limit": 0.5}, "clahe_clip_limit"),
        ({"clahe_clip_limit": 10.5}, "clahe_clip_limit"),
        ({"clahe_tile_size": 5}, "clahe_tile_size"),
        ({"clahe_tile_size": 18}, "clahe_tile_size"),
        ({"gaussian_kernel_size": 4}, "gaussian_kernel_size"),
        ({"gaussian_kernel_size": 17}, "gaussian_kernel_size"),
        ({"average_kernel_size": 0}, "average_kernel_size"),
        ({"canny_threshold1": -1}, "canny_threshold1"),
        ({"canny_threshold2": 301}, "canny_threshold2"),
        ({"canny_threshold1": "high"}, "canny_threshold1"),
    ])
    def test_out_of_range_rejected(self, changes, field):
        with pytest.raises(InvalidConfig) as excinfo:
            DEFAULT_CONFIG.replace(**changes).validate()
        assert excinfo.value.field == field

    def test_threshold_order_enforced_only_when_canny_enabled(self):
        inverted = DEFAULT_CONFIG.replace(canny_threshold1=200, canny_threshold2=100)
        inverted.validate()

        with pytest.raises(InvalidConfig):
            inverted.replace(canny_edge=True).validate()

    def test_boundaries_accepted(self):
        FilterConfig(
            clahe_clip_limit=10.0,
            clahe_tile_size=16,
            gaussian_kernel_size=15,
            average_kernel_size=1,
            canny_threshold1=0,
            canny_threshold2=300,
        ).validate()

    def test_to_dict(self):
        data = DEFAULT_CONFIG.to_dict()
        assert data["canny_threshold2"] == 150
        assert len(data) == len(dataclasses.fields(FilterConfig))


class TestStages:

    def test_fixed_order(self):
        assert [stage.name for stage in STAGES] == [
            "histogram_equalization",
            "clahe",
            "gaussian_blur",
            "average_blur",
            "sharpen",
            "sobel_edge",
            "canny_edge",
        ]

    def test_active_stages_follow_stage_order(self):
        config = FilterConfig(canny_edge=True, sharpen=True, clahe=True)
        assert active_stages(config) == ["clahe", "sharpen", "canny_edge"]


class TestFilterPipeline:

    def test_refuses_to_run_before_initialization(self, gradient_image):
        pipeline = FilterPipeline(ProcessingBackend())
        assert not pipeline.is_ready
        with pytest.raises(EngineNotReady):
            pipeline.apply(gradient_image, DEFAULT_CONFIG)

    def test_initialize_is_idempotent(self):
        backend = ProcessingBackend()
        assert backend.initialize() is backend.initialize()
        assert backend.is_ready

    def test_initialize_warms_kernel_caches(self):
        gaussian_kernel.cache_clear()
        box_kernel.cache_clear()

        ProcessingBackend().initialize()

        assert gaussian_kernel.cache_info().currsize == 8
        assert box_kernel.cache_info().currsize == 8

    def test_no_filters_returns_equal_copy(self, pipeline, noisy_image):
        result = pipeline.apply(noisy_image, DEFAULT_CONFIG)
        assert result == noisy_image
        assert result.data is not noisy_image.data

    def test_source_is_untouched(self, pipeline, noisy_image):
        before = noisy_image.copy()
        pipeline.apply(noisy_image, ALL_ON)
        assert noisy_image == before

    def test_deterministic(self, pipeline, noisy_image):
        config = ALL_ON.replace(canny_edge=False)
        assert pipeline.apply(noisy_image, config) == pipeline.apply(noisy_image, config)

    def test_invalid_config_raises(self, pipeline, noisy_image):
        with pytest.raises(InvalidConfig):
            pipeline.apply(noisy_image, DEFAULT_CONFIG.replace(gaussian_kernel_size=6))

    def test_stages_run_in_fixed_order(self, pipeline, noisy_image):
        config = FilterConfig(
            sharpen=True,
            gaussian_blur=True,
            gaussian_kernel_size=3,
            histogram_equalization=True,
        )
        expected = SharpenKernel().apply(
            GaussianBlur(3).apply(HistogramEqualizer().apply(noisy_image))
        )
        assert pipeline.apply(noisy_image, config) == expected

    def test_canny_sees_sobel_output(self, pipeline, square_image):
        config = FilterConfig(sobel_edge=True, canny_edge=True)
        expected = CannyEdge(50, 150).apply(SobelEdge().apply(square_image))
        assert pipeline.apply(square_image, config) == expected

    def test_every_stage_enabled(self, pipeline, noisy_image):
        expected = noisy_image
        for step in (
            HistogramEqualizer(),
            AdaptiveEqualizer(2.0, 8),
            GaussianBlur(5),
            BoxBlur(5),
            SharpenKernel(),
            SobelEdge(),
            CannyEdge(50, 150),
        ):
            expected = step.apply(expected)

        result = pipeline.apply(noisy_image, ALL_ON)
        assert result == expected
        assert set(np.unique(result.data[:, :, :3]).tolist()) <= {0, 255}

    def test_process_collects_histograms(self, pipeline, square_image):
        config = FilterConfig(sobel_edge=True)
        result = pipeline.process(square_image, config)

        assert result.applied_filters == ["sobel_edge"]
        assert result.config == config
        assert result.processing_time_seconds >= 0
        assert result.histogram_before.red[30] == 32 * 32 - 16 * 16
        assert result.histogram_before.red[220] == 16 * 16
        assert result.histogram_after.total == 32 * 32
