"""
Tone processing modules for DenoiseLab

Includes brightness/contrast adjustment and automatic tone analysis.
"""

from .adjustments import (
    ToneAnalysis,
    analyze_tone,
    brightness_contrast,
    contrast_factor,
    tone_parameters,
)

__all__ = [
    "ToneAnalysis",
    "analyze_tone",
    "brightness_contrast",
    "contrast_factor",
    "tone_parameters",
]
