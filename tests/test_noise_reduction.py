"""
Tests for the denoising kernels and their parameter sets.
"""

import math

import numpy as np
import pytest

from denoiselab.exceptions import InvalidParameter
from denoiselab.processing.block_scheduler import apply_filter
from denoiselab.processing.buffer import PixelBuffer
from denoiselab.processing.noise.kernels import (
    box_mean, gaussian_blur, gaussian_weights, total_variation_norm
)
from denoiselab.processing.noise.models import (
    FilterAlgorithm, MeanParams, GaussianParams, MedianParams, BilateralParams,
    NonLocalMeansParams, TotalVariationParams, BrightnessContrastParams, SharpenParams,
    make_parameters, parameters_from_dict, parse_algorithm
)

from conftest import make_noisy_buffer

DENOISERS = [
    MeanParams(radius=2),
    GaussianParams(radius=2, sigma=1.0),
    MedianParams(radius=1),
    BilateralParams(radius=2, spatial_sigma=2.0, range_sigma=30.0),
    NonLocalMeansParams(search_radius=2, patch_radius=1, h=30.0),
    TotalVariationParams(weight=5.0, iterations=5, step_size=1.0),
]


class TestParameterValidation:
    """Test that invalid knobs are rejected at construction."""

    @pytest.mark.parametrize("factory", [
        lambda: MeanParams(radius=0),
        lambda: MeanParams(radius=-1),
        lambda: MeanParams(radius=1.5),
        lambda: MedianParams(radius=True),
        lambda: GaussianParams(sigma=-1.0),
        lambda: GaussianParams(sigma=0.0),
        lambda: GaussianParams(sigma=math.nan),
        lambda: BilateralParams(range_sigma=math.inf),
        lambda: NonLocalMeansParams(h=0.0),
        lambda: NonLocalMeansParams(patch_radius=0),
        lambda: TotalVariationParams(iterations=0),
        lambda: TotalVariationParams(weight=-2.0),
        lambda: TotalVariationParams(step_size=1.5),
        lambda: BrightnessContrastParams(contrast=math.nan),
        lambda: SharpenParams(strength=0.0),
    ])
    def test_rejected(self, factory):
        """Every invalid knob raises InvalidParameter."""
        with pytest.raises(InvalidParameter):
            factory()

    def test_invalid_parameter_is_value_error(self):
        """Callers catching ValueError still see parameter errors."""
        with pytest.raises(ValueError):
            MeanParams(radius=0)

    def test_halo(self):
        """Halo covers everything a kernel reads around an output pixel."""
        assert MeanParams(radius=3).halo == 3
        assert NonLocalMeansParams(search_radius=4, patch_radius=2).halo == 6
        assert TotalVariationParams(iterations=12).halo == 12
        assert BrightnessContrastParams().halo == 0

    def test_parse_algorithm(self):
        """Tags resolve case-insensitively; unknown tags are rejected."""
        assert parse_algorithm("NLM") is FilterAlgorithm.NON_LOCAL_MEANS
        assert parse_algorithm(FilterAlgorithm.TOTAL_VARIATION) is FilterAlgorithm.TOTAL_VARIATION
        with pytest.raises(InvalidParameter):
            parse_algorithm("wavelet")

    def test_make_parameters_unknown_knob(self):
        """Knobs belonging to another algorithm are rejected."""
        with pytest.raises(InvalidParameter):
            make_parameters("median", sigma=1.0)

    def test_dict_round_trip(self):
        """to_dict output rebuilds an equal parameter set."""
        params = BilateralParams(radius=3, spatial_sigma=1.5, range_sigma=20.0)
        data = params.to_dict()
        assert data['algorithm'] == 'bilateral'
        assert parameters_from_dict(data) == params

    def test_from_dict_requires_algorithm(self):
        with pytest.raises(InvalidParameter):
            parameters_from_dict({'radius': 1})


class TestSmoothingKernels:
    """Test properties shared by the smoothing kernels."""

    @pytest.mark.parametrize("params", DENOISERS, ids=lambda p: p.algorithm.value)
    def test_flat_image_unchanged(self, params):
        """A constant image is a fixed point of every smoothing kernel."""
        buffer = PixelBuffer.filled(12, 9, (37, 128, 250))
        assert apply_filter(buffer, params) == buffer

    @pytest.mark.parametrize("params", DENOISERS, ids=lambda p: p.algorithm.value)
    def test_dimensions_preserved(self, params):
        """Output keeps width, height and channel count."""
        buffer = make_noisy_buffer(17, 11, channels=4)
        result = apply_filter(buffer, params)
        assert result.shape == buffer.shape

    @pytest.mark.parametrize("params", DENOISERS, ids=lambda p: p.algorithm.value)
    def test_alpha_passed_through(self, params):
        """Alpha is never filtered."""
        buffer = make_noisy_buffer(16, 12, channels=4, seed=3)
        result = apply_filter(buffer, params)
        assert np.array_equal(result.array[..., 3], buffer.array[..., 3])

    @pytest.mark.parametrize("params", DENOISERS, ids=lambda p: p.algorithm.value)
    def test_reduces_noise(self, params):
        """Smoothing lowers the total variation of a noisy image."""
        buffer = make_noisy_buffer(32, 32, noise=25.0, seed=7)
        result = apply_filter(buffer, params)
        assert total_variation_norm(result.array) < total_variation_norm(buffer.array)


class TestMeanAndGaussian:
    """Test the box and Gaussian filters."""

    def test_box_mean_radius_zero_is_identity(self):
        """A zero radius averages each pixel with itself only."""
        region = make_noisy_buffer(8, 6).to_array()
        assert np.array_equal(box_mean(region, 0), region.astype(np.float64))

    def test_gaussian_blur_radius_zero_is_identity(self):
        region = make_noisy_buffer(8, 6).to_array()
        assert np.array_equal(gaussian_blur(region, 0, 2.0), region.astype(np.float64))

    def test_mean_of_known_window(self):
        """Centre of a 3x3 window is the average of its nine samples."""
        array = np.zeros((3, 3, 3), dtype=np.uint8)
        array[..., 0] = [[0, 9, 18], [27, 36, 45], [54, 63, 72]]
        result = apply_filter(PixelBuffer.from_array(array), MeanParams(radius=1))
        assert result.get_pixel(1, 1)[0] == 36

    def test_gaussian_weights_normalized(self):
        weights = gaussian_weights(3, 1.2)
        assert weights.sum() == pytest.approx(1.0)
        assert np.allclose(weights, weights[::-1])

    def test_tiny_sigma_is_identity(self):
        """As sigma approaches zero the kernel collapses onto the centre."""
        buffer = make_noisy_buffer(20, 14, seed=5)
        result = apply_filter(buffer, GaussianParams(radius=2, sigma=1e-3))
        assert result == buffer

    def test_separable_matches_2d(self):
        """Two 1D passes equal the 2D weighted sum within tolerance."""
        region = make_noisy_buffer(15, 13, seed=2).to_array()[..., :3].astype(np.float64)
        radius, sigma = 2, 1.3
        taps = gaussian_weights(radius, sigma)
        kernel_2d = np.outer(taps, taps)

        out_h = region.shape[0] - 2 * radius
        out_w = region.shape[1] - 2 * radius
        expected = np.zeros((out_h, out_w, 3))
        for dy in range(2 * radius + 1):
            for dx in range(2 * radius + 1):
                expected += kernel_2d[dy, dx] * region[dy:dy + out_h, dx:dx + out_w]

        assert np.allclose(gaussian_blur(region, radius, sigma), expected, atol=1e-9)


class TestMedian:
    """Test the median filter."""

    def test_removes_salt_pixel(self):
        """An isolated outlier is replaced by the neighbourhood median."""
        array = np.full((5, 5, 3), 100, dtype=np.uint8)
        array[2, 2] = 255
        result = apply_filter(PixelBuffer.from_array(array), MedianParams(radius=1))
        assert np.all(result.array == 100)

    def test_per_channel(self):
        """Channels are ranked independently."""
        array = np.zeros((3, 3, 3), dtype=np.uint8)
        array[..., 0] = 10
        array[..., 2] = np.arange(9).reshape(3, 3) * 10
        result = apply_filter(PixelBuffer.from_array(array), MedianParams(radius=1))
        assert result.get_pixel(1, 1) == (10, 0, 40)


class TestBilateral:
    """Test the bilateral filter."""

    def test_preserves_strong_edge(self):
        """A step much larger than range_sigma survives; a box blur smears it."""
        array = np.zeros((10, 10, 3), dtype=np.uint8)
        array[:, 5:] = 200
        buffer = PixelBuffer.from_array(array)

        bilateral = apply_filter(buffer, BilateralParams(radius=2, spatial_sigma=2.0,
                                                         range_sigma=10.0))
        box = apply_filter(buffer, MeanParams(radius=2))

        assert bilateral == buffer
        assert box != buffer


class TestNonLocalMeans:
    """Test non-local means."""

    def test_large_h_approaches_window_mean(self):
        """With huge h every candidate weighs the same."""
        buffer = make_noisy_buffer(12, 12, seed=11)
        nlm = apply_filter(buffer, NonLocalMeansParams(search_radius=1, patch_radius=1, h=1e9))
        box = apply_filter(buffer, MeanParams(radius=1))
        difference = np.abs(nlm.array.astype(int) - box.array.astype(int))
        assert difference.max() <= 1


class TestTotalVariation:
    """Test total-variation denoising."""

    @pytest.fixture
    def noisy_step(self):
        rng = np.random.default_rng(42)
        array = np.full((32, 32, 3), 60.0)
        array[:, 16:] = 190.0
        array += rng.normal(0, 20, array.shape)
        return PixelBuffer.from_array(np.clip(np.rint(array), 0, 255).astype(np.uint8))

    def test_large_weight_reduces_total_variation(self, noisy_step):
        """Strong regularization flattens the noise."""
        result = apply_filter(noisy_step, TotalVariationParams(weight=1e6, iterations=30,
                                                               step_size=0.5))
        assert total_variation_norm(result.array) < 0.5 * total_variation_norm(noisy_step.array)

    def test_stays_within_input_range(self, noisy_step):
        """Every iterate is a convex combination of input values."""
        result = apply_filter(noisy_step, TotalVariationParams(weight=1e6, iterations=30,
                                                               step_size=0.5))
        assert result.array.min() >= noisy_step.array.min()
        assert result.array.max() <= noisy_step.array.max()

    def test_smaller_step_changes_less(self, noisy_step):
        """Under-relaxation moves the image less per iteration."""
        full = apply_filter(noisy_step, TotalVariationParams(weight=10.0, iterations=3))
        damped = apply_filter(noisy_step, TotalVariationParams(weight=10.0, iterations=3,
                                                               step_size=0.2))
        source = noisy_step.array.astype(int)
        assert (np.abs(damped.array.astype(int) - source).sum()
                < np.abs(full.array.astype(int) - source).sum())

    def test_total_variation_norm(self):
        """Sum of absolute forward differences over colour channels."""
        array = np.zeros((2, 2, 3), dtype=np.uint8)
        array[0, 1] = 10
        assert total_variation_norm(array) == 3 * (10 + 10)


class TestExtremeKnobs:
    """Test knobs at the edges of the floating point range."""

    @pytest.mark.parametrize("params", [
        GaussianParams(radius=1, sigma=1e-200),
        BilateralParams(radius=1, spatial_sigma=1e-200),
        BilateralParams(radius=1, range_sigma=1e-200),
        NonLocalMeansParams(search_radius=1, patch_radius=1, h=1e-200),
    ], ids=["gaussian-sigma", "bilateral-spatial", "bilateral-range", "nlm-h"])
    def test_vanishing_width_is_identity(self, params):
        """A window width too small to square collapses onto the centre pixel."""
        buffer = make_noisy_buffer(12, 10, channels=4, seed=1)
        assert apply_filter(buffer, params) == buffer

    def test_gaussian_weights_vanishing_sigma(self):
        assert gaussian_weights(2, 1e-200).tolist() == [0.0, 0.0, 1.0, 0.0, 0.0]

    def test_huge_tv_weight_stays_finite(self):
        """An overflowing regularization weight still averages neighbours."""
        flat = PixelBuffer.filled(8, 8, (200, 100, 50))
        assert apply_filter(flat, TotalVariationParams(weight=1e308, iterations=3)) == flat

        noisy = make_noisy_buffer(16, 16, seed=8)
        result = apply_filter(noisy, TotalVariationParams(weight=1e308, iterations=5,
                                                          step_size=0.5))
        assert result.array[..., :3].min() >= noisy.array[..., :3].min()
        assert total_variation_norm(result.array) < total_variation_norm(noisy.array)

    def test_tiny_tv_weight_keeps_input(self):
        """A weight that underflows against the diffusivity leaves the input as is."""
        buffer = make_noisy_buffer(10, 10, seed=6)
        assert apply_filter(buffer, TotalVariationParams(weight=1e-320, iterations=2)) == buffer
