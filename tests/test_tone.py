"""
Tests for brightness/contrast, tone analysis and sharpening.
"""

import numpy as np
import pytest

from denoiselab.exceptions import InvalidParameter
from denoiselab.processing.block_scheduler import BlockScheduler, apply_filter
from denoiselab.processing.buffer import PixelBuffer
from denoiselab.processing.noise.models import BrightnessContrastParams, SharpenParams
from denoiselab.processing.tone import (
    analyze_tone, contrast_factor, tone_parameters
)

from conftest import make_noisy_buffer


class TestBrightnessContrast:
    """Test the affine tone adjustment."""

    @pytest.fixture
    def ramp(self):
        array = np.zeros((1, 4, 3), dtype=np.uint8)
        array[0, :, 0] = [0, 100, 200, 255]
        array[0, :, 1] = 50
        array[0, :, 2] = 128
        return PixelBuffer.from_array(array)

    def test_identity(self, ramp):
        assert apply_filter(ramp, BrightnessContrastParams()) == ramp

    def test_affine_with_clamping(self, ramp):
        """input * contrast + brightness, clamped to 0-255."""
        result = apply_filter(ramp, BrightnessContrastParams(brightness=10.0, contrast=2.0))
        assert result.array[0, :, 0].tolist() == [10, 210, 255, 255]
        assert result.array[0, :, 1].tolist() == [110] * 4

    def test_negative_values_clamp_to_zero(self, ramp):
        result = apply_filter(ramp, BrightnessContrastParams(brightness=-300.0))
        assert np.all(result.array == 0)

    def test_extreme_values_stay_in_range(self):
        """Any finite brightness/contrast yields valid 8-bit samples."""
        buffer = make_noisy_buffer(16, 16)
        for brightness, contrast, expected in [(1e6, 1e6, 255), (-1e6, 3.0, 0), (0.0, -50.0, 0)]:
            result = apply_filter(buffer, BrightnessContrastParams(brightness=brightness,
                                                                   contrast=contrast))
            assert np.all(result.array[..., :3] == expected)

    def test_pivot(self, ramp):
        """Contrast scales around the pivot."""
        result = apply_filter(ramp, BrightnessContrastParams(contrast=0.5, pivot=128.0))
        assert result.array[0, :, 2].tolist() == [128] * 4
        assert result.array[0, 0, 0] == 64

    def test_alpha_untouched(self):
        buffer = make_noisy_buffer(8, 8, channels=4)
        result = apply_filter(buffer, BrightnessContrastParams(brightness=80.0))
        assert np.array_equal(result.array[..., 3], buffer.array[..., 3])


class TestSliders:
    """Test slider-to-parameter mapping."""

    @pytest.mark.parametrize("slider,factor", [
        (0.0, 1.0), (1.0, 4.0), (-1.0, 0.25), (0.5, 2.5),
    ])
    def test_contrast_factor(self, slider, factor):
        assert contrast_factor(slider) == pytest.approx(factor)

    def test_neutral_sliders_are_identity(self):
        buffer = make_noisy_buffer(12, 12)
        assert apply_filter(buffer, tone_parameters(0.0, 0.0)) == buffer

    def test_full_brightness_whitens(self):
        buffer = PixelBuffer.filled(4, 4, (128, 128, 128))
        result = apply_filter(buffer, tone_parameters(1.0, 0.0))
        assert np.all(result.array == 255)


    def test_brightness_clamps_before_contrast(self):
        """Saturated brightness is not recovered by lowering contrast."""
        array = np.full((1, 2, 3), 250, dtype=np.uint8)
        array[0, 1] = 100
        result = apply_filter(PixelBuffer.from_array(array), tone_parameters(0.4, -0.5))
        # 250 + 51 saturates at 255, then (255 - 128) * 0.4 + 128 = 178.8
        assert result.get_pixel(0, 0) == (179, 179, 179)
        # (100 + 51 - 128) * 0.4 + 128 = 137.2
        assert result.get_pixel(1, 0) == (137, 137, 137)

    def test_single_step_form_does_not_clamp_between(self):
        array = np.full((1, 1, 3), 250, dtype=np.uint8)
        params = BrightnessContrastParams(brightness=51.0, contrast=0.4, pivot=128.0)
        result = apply_filter(PixelBuffer.from_array(array), params)
        # (250 - 128) * 0.4 + 128 + 51 = 227.8
        assert result.get_pixel(0, 0) == (228, 228, 228)

    def test_brightness_first_must_be_bool(self):
        with pytest.raises(InvalidParameter):
            BrightnessContrastParams(brightness_first="yes")

class TestToneAnalysis:
    """Test automatic tone suggestions."""

    def test_dark_flat_image(self):
        """A dark low-contrast image gets brighter and more contrasty."""
        analysis = analyze_tone(PixelBuffer.filled(10, 10, (51, 51, 51)))
        assert analysis.mean_brightness == pytest.approx(0.2)
        assert analysis.brightness_std == pytest.approx(0.0)
        assert analysis.brightness_adjust == pytest.approx(0.6)
        assert analysis.contrast_adjust == 0.5

    def test_harsh_image(self):
        """Half black, half white lowers contrast."""
        array = np.zeros((10, 10, 3), dtype=np.uint8)
        array[:, 5:] = 255
        analysis = analyze_tone(PixelBuffer.from_array(array))
        assert analysis.mean_brightness == pytest.approx(0.5)
        assert analysis.brightness_adjust == pytest.approx(0.0)
        assert analysis.contrast_adjust == -0.3

    def test_suggestion_brightens_dark_image(self):
        buffer = make_noisy_buffer(20, 20, noise=5.0)
        dark = apply_filter(buffer, BrightnessContrastParams(contrast=0.3))
        adjusted = apply_filter(dark, analyze_tone(dark).to_parameters())
        assert adjusted.array[..., :3].mean() > dark.array[..., :3].mean()


class TestSharpen:
    """Test unsharp masking."""

    def test_flat_image_unchanged(self):
        buffer = PixelBuffer.filled(9, 9, (90, 90, 90))
        assert apply_filter(buffer, SharpenParams(strength=3.0)) == buffer

    def test_increases_edge_contrast(self):
        """Pixels beside a step overshoot away from the other side."""
        array = np.full((6, 8, 3), 100, dtype=np.uint8)
        array[:, 4:] = 150
        result = apply_filter(PixelBuffer.from_array(array), SharpenParams(strength=1.0))
        assert result.get_pixel(3, 2)[0] < 100
        assert result.get_pixel(4, 2)[0] > 150

    def test_tiled_sharpen(self):
        buffer = make_noisy_buffer(40, 30, channels=4)
        params = SharpenParams(strength=2.0, radius=2, sigma=1.5)
        assert BlockScheduler(tile_size=7).run(buffer, params) == apply_filter(buffer, params)
