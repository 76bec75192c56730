"""
Sharpening for DenoiseLab.

Unsharp masking: the difference between the image and a small-radius
Gaussian blur of it is scaled and added back, then clamped to 0-255.
"""

import numpy as np

from .buffer import COLOR_CHANNELS
from .noise.kernels import gaussian_blur, interior, merge_alpha, to_uint8
from .noise.models import SharpenParams


def unsharp_mask(region: np.ndarray, params: SharpenParams) -> np.ndarray:
    """output = clamp(input + strength * (input - blurred(input)), 0, 255)"""
    values = region[..., :COLOR_CHANNELS]
    blurred = gaussian_blur(values, params.radius, params.sigma)
    original = interior(values, params.halo).astype(np.float64)

    # High-frequency detail removed by the blur
    detail = original - blurred
    sharpened = original + params.strength * detail

    return merge_alpha(region, params.halo, to_uint8(sharpened))
