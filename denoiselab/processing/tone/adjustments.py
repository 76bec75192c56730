"""
Brightness/contrast adjustment and automatic tone analysis.

The adjustment is a per-pixel affine transform clamped to 0-255; alpha is
passed through. The analysis suggests an adjustment that pulls the mean
brightness toward middle grey and nudges contrast by deviation band.
"""

import logging
from dataclasses import dataclass

import numpy as np

from ..buffer import COLOR_CHANNELS, PixelBuffer
from ..noise.kernels import merge_alpha, to_uint8
from ..noise.models import BrightnessContrastParams

logger = logging.getLogger(__name__)

TARGET_BRIGHTNESS = 0.5
MID_GREY = 128.0


@dataclass
class ToneAnalysis:
    """Brightness statistics and the suggested tone adjustment"""
    mean_brightness: float      # 0-1
    brightness_std: float       # 0-1
    brightness_adjust: float    # -1 to 1, slider units
    contrast_adjust: float      # -1 to 1, slider units

    def to_parameters(self) -> BrightnessContrastParams:
        """Express the suggestion as brightness-then-contrast slider steps."""
        return tone_parameters(self.brightness_adjust, self.contrast_adjust)


def brightness_contrast(region: np.ndarray, params: BrightnessContrastParams) -> np.ndarray:
    """output = clamp((input - pivot) * contrast + pivot + brightness, 0, 255)"""
    values = region[..., :COLOR_CHANNELS].astype(np.float64)
    if params.brightness_first:
        # Brightness step saturates before contrast sees it
        values = to_uint8(values + params.brightness).astype(np.float64)
        adjusted = (values - params.pivot) * params.contrast + params.pivot
    else:
        adjusted = (values - params.pivot) * params.contrast + params.pivot + params.brightness
    return merge_alpha(region, 0, to_uint8(adjusted))


def contrast_factor(contrast: float) -> float:
    """Map a -1..1 contrast slider to a multiplicative factor in 0.25..4."""
    if contrast >= 0:
        return 1.0 + contrast * 3.0
    return 1.0 / (1.0 - contrast * 3.0)


def tone_parameters(brightness: float, contrast: float) -> BrightnessContrastParams:
    """
    Build adjustment parameters from -1..1 brightness and contrast sliders.

    Brightness shifts by up to half the sample range and is applied (and
    clamped) before contrast, which scales around mid grey.
    """
    return BrightnessContrastParams(
        brightness=brightness * 0.5 * 255.0,
        contrast=contrast_factor(contrast),
        pivot=MID_GREY,
        brightness_first=True
    )


def analyze_tone(buffer: PixelBuffer) -> ToneAnalysis:
    """
    Analyze brightness and suggest an adjustment.

    Brightness is the mean of the colour channels, normalized to 0-1.
    """
    values = buffer.array[..., :COLOR_CHANNELS].astype(np.float64)
    brightness = values.mean(axis=2) / 255.0

    mean_brightness = float(brightness.mean())
    brightness_std = float(brightness.std())

    brightness_adjust = (TARGET_BRIGHTNESS - mean_brightness) * 2.0

    if brightness_std < 0.1:
        contrast_adjust = 0.5       # Flat image
    elif brightness_std > 0.3:
        contrast_adjust = -0.3      # Harsh image
    else:
        contrast_adjust = 0.1

    logger.debug(f"Tone analysis: mean={mean_brightness:.3f}, std={brightness_std:.3f}")

    return ToneAnalysis(
        mean_brightness=mean_brightness,
        brightness_std=brightness_std,
        brightness_adjust=brightness_adjust,
        contrast_adjust=contrast_adjust
    )
