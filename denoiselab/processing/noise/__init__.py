"""
Noise Reduction Module for DenoiseLab

Provides the denoising kernels and their validated parameter sets.
"""

from .models import (
    FilterAlgorithm,
    FilterParameters,
    MeanParams,
    GaussianParams,
    MedianParams,
    BilateralParams,
    NonLocalMeansParams,
    TotalVariationParams,
    BrightnessContrastParams,
    SharpenParams,
    DENOISE_ALGORITHMS,
    make_parameters,
    parameters_from_dict,
)
from .kernels import total_variation_norm

__all__ = [
    'FilterAlgorithm',
    'FilterParameters',
    'MeanParams',
    'GaussianParams',
    'MedianParams',
    'BilateralParams',
    'NonLocalMeansParams',
    'TotalVariationParams',
    'BrightnessContrastParams',
    'SharpenParams',
    'DENOISE_ALGORITHMS',
    'make_parameters',
    'parameters_from_dict',
    'total_variation_norm',
]
