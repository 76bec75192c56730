"""
Quality metrics used to rank denoising candidates.

Each scorer compares a filtered result to its source image and returns a
float where higher is better. Scorers accept PixelBuffers or (H, W, C)
uint8 arrays.
"""

import logging
from typing import Callable, Dict, Union

import cv2
import numpy as np

from ..exceptions import InvalidParameter
from .buffer import PixelBuffer

logger = logging.getLogger(__name__)

ImageLike = Union[PixelBuffer, np.ndarray]
ScoreFunction = Callable[[ImageLike, ImageLike], float]

# SSIM constants for 8-bit data (Wang et al. 2004)
SSIM_C1 = (0.01 * 255) ** 2
SSIM_C2 = (0.03 * 255) ** 2
SSIM_WINDOW = (11, 11)
SSIM_SIGMA = 1.5


def _luma(image: ImageLike) -> np.ndarray:
    """Rec. 601 luma as float64."""
    if isinstance(image, PixelBuffer):
        image = image.array
    values = np.asarray(image, dtype=np.float64)
    return 0.299 * values[..., 0] + 0.587 * values[..., 1] + 0.114 * values[..., 2]


def _check_shapes(source: np.ndarray, result: np.ndarray):
    if source.shape != result.shape:
        raise InvalidParameter(f"Cannot compare images of shape {source.shape} and {result.shape}")


def ssim(source: ImageLike, result: ImageLike) -> float:
    """Mean structural similarity of the luma planes, in [-1, 1]."""
    x = _luma(source)
    y = _luma(result)
    _check_shapes(x, y)

    mu_x = cv2.GaussianBlur(x, SSIM_WINDOW, SSIM_SIGMA)
    mu_y = cv2.GaussianBlur(y, SSIM_WINDOW, SSIM_SIGMA)
    sigma_x = cv2.GaussianBlur(x * x, SSIM_WINDOW, SSIM_SIGMA) - mu_x ** 2
    sigma_y = cv2.GaussianBlur(y * y, SSIM_WINDOW, SSIM_SIGMA) - mu_y ** 2
    sigma_xy = cv2.GaussianBlur(x * y, SSIM_WINDOW, SSIM_SIGMA) - mu_x * mu_y

    numerator = (2 * mu_x * mu_y + SSIM_C1) * (2 * sigma_xy + SSIM_C2)
    denominator = (mu_x ** 2 + mu_y ** 2 + SSIM_C1) * (sigma_x + sigma_y + SSIM_C2)
    return float(np.mean(numerator / denominator))


def _gradient_magnitude(luma: np.ndarray) -> np.ndarray:
    sobel_x = cv2.Sobel(luma, cv2.CV_64F, 1, 0, ksize=3)
    sobel_y = cv2.Sobel(luma, cv2.CV_64F, 0, 1, ksize=3)
    return np.sqrt(sobel_x ** 2 + sobel_y ** 2)


def edge_preservation(source: ImageLike, result: ImageLike) -> float:
    """
    Correlation of Sobel gradient magnitudes, clipped to [0, 1].

    The source is smoothed lightly first so its noise does not count as
    structure the result should keep.
    """
    x = _luma(source)
    y = _luma(result)
    _check_shapes(x, y)

    source_edges = _gradient_magnitude(cv2.GaussianBlur(x, (5, 5), 1.0)).ravel()
    result_edges = _gradient_magnitude(y).ravel()

    source_std = source_edges.std()
    result_std = result_edges.std()
    if source_std == 0 or result_std == 0:
        # Flat on both sides means nothing was lost
        return 1.0 if source_std == result_std else 0.0

    correlation = np.corrcoef(source_edges, result_edges)[0, 1]
    return float(np.clip(correlation, 0.0, 1.0))


def _noise_residual(luma: np.ndarray) -> np.ndarray:
    """High-pass residual that isolates fine grain."""
    return luma - cv2.GaussianBlur(luma, (5, 5), 0)


def noise_reduction(source: ImageLike, result: ImageLike) -> float:
    """Fraction of the source's high-frequency residual removed, in [0, 1]."""
    x = _luma(source)
    y = _luma(result)
    _check_shapes(x, y)

    source_noise = np.std(_noise_residual(x))
    if source_noise == 0:
        return 0.0
    result_noise = np.std(_noise_residual(y))
    return float(np.clip(1.0 - result_noise / source_noise, 0.0, 1.0))


def balanced_score(source: ImageLike, result: ImageLike) -> float:
    """Equal blend of noise reduction and edge preservation."""
    return 0.5 * edge_preservation(source, result) + 0.5 * noise_reduction(source, result)


SCORERS: Dict[str, ScoreFunction] = {
    'ssim': ssim,
    'edge_preservation': edge_preservation,
    'noise_reduction': noise_reduction,
    'balanced': balanced_score,
}


def get_scorer(scorer: Union[str, ScoreFunction, None]) -> ScoreFunction:
    """Resolve a scorer by name; callables are returned unchanged."""
    if scorer is None:
        return balanced_score
    if callable(scorer):
        return scorer
    try:
        return SCORERS[str(scorer).lower()]
    except KeyError:
        raise InvalidParameter(
            f"Unknown scorer {scorer!r} (expected one of: {', '.join(SCORERS)})"
        )
