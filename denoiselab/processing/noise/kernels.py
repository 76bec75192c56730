"""
Denoising kernels.

Every kernel takes a source region that already carries `params.halo` extra
pixels on each side (border replicated beyond the image edge) and returns the
uint8 interior. Output pixels are computed independently of one another with
the same arithmetic order regardless of region size, so filtering a whole
image and filtering it tile by tile give identical bytes.
"""

import logging
import math

import numpy as np
from scipy.ndimage import median_filter as _nd_median_filter

from ..buffer import COLOR_CHANNELS
from .models import (
    MeanParams, GaussianParams, MedianParams, BilateralParams,
    NonLocalMeansParams, TotalVariationParams
)

logger = logging.getLogger(__name__)

# Keeps TV diffusivity finite on flat areas (0-255 sample units)
TV_EPSILON = 1.0


def interior(region: np.ndarray, halo: int) -> np.ndarray:
    """Strip `halo` pixels from every side of a region."""
    if halo <= 0:
        return region
    return region[halo:region.shape[0] - halo, halo:region.shape[1] - halo]


def to_uint8(values: np.ndarray) -> np.ndarray:
    """Round half to even and clip to the 8-bit range."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def merge_alpha(region: np.ndarray, halo: int, color: np.ndarray) -> np.ndarray:
    """Attach the untouched alpha channel of `region` to filtered colour samples."""
    if region.shape[2] <= COLOR_CHANNELS:
        return color
    alpha = interior(region, halo)[..., COLOR_CHANNELS:]
    return np.concatenate([color, alpha], axis=2)


def box_sum(values: np.ndarray, radius: int) -> np.ndarray:
    """
    Exact windowed sum over (2r+1)^2 neighbourhoods of an integer array.

    Uses a summed-area table, so the result shrinks by `radius` on each side.
    """
    values = values.astype(np.int64)
    if radius <= 0:
        return values
    size = 2 * radius + 1
    table = values.cumsum(axis=0).cumsum(axis=1)
    pad = ((1, 0), (1, 0)) + ((0, 0),) * (values.ndim - 2)
    table = np.pad(table, pad)
    return (table[size:, size:] - table[:-size, size:]
            - table[size:, :-size] + table[:-size, :-size])


def box_mean(region: np.ndarray, radius: int) -> np.ndarray:
    """Mean over (2r+1)^2 windows as float64; radius 0 returns the samples unchanged."""
    if radius <= 0:
        return region.astype(np.float64)
    size = 2 * radius + 1
    return box_sum(region, radius) / float(size * size)


def gaussian_weights(radius: int, sigma: float) -> np.ndarray:
    """Normalized 1D Gaussian taps; their outer product is the normalized 2D kernel."""
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    # Scale before squaring so a tiny sigma collapses onto the centre tap
    with np.errstate(over='ignore'):
        weights = np.exp(-0.5 * (offsets / sigma) ** 2)
    return weights / weights.sum()


def gaussian_blur(region: np.ndarray, radius: int, sigma: float) -> np.ndarray:
    """
    Separable Gaussian blur as float64, shrinking the region by `radius`.

    Horizontal then vertical pass; equal to the 2D weighted sum within
    floating point tolerance. Radius 0 returns the samples unchanged.
    """
    values = region.astype(np.float64)
    if radius <= 0:
        return values
    taps = gaussian_weights(radius, sigma)
    size = 2 * radius + 1
    out_h = values.shape[0] - 2 * radius
    out_w = values.shape[1] - 2 * radius

    horizontal = taps[0] * values[:, 0:out_w]
    for i in range(1, size):
        horizontal = horizontal + taps[i] * values[:, i:i + out_w]

    result = taps[0] * horizontal[0:out_h]
    for i in range(1, size):
        result = result + taps[i] * horizontal[i:i + out_h]
    return result


def mean_filter(region: np.ndarray, params: MeanParams) -> np.ndarray:
    """Arithmetic mean over the window."""
    color = box_mean(region[..., :COLOR_CHANNELS], params.radius)
    return merge_alpha(region, params.halo, to_uint8(color))


def gaussian_filter(region: np.ndarray, params: GaussianParams) -> np.ndarray:
    """Gaussian-weighted mean over the window."""
    color = gaussian_blur(region[..., :COLOR_CHANNELS], params.radius, params.sigma)
    return merge_alpha(region, params.halo, to_uint8(color))


def median_filter(region: np.ndarray, params: MedianParams) -> np.ndarray:
    """Per-channel median over the window."""
    size = 2 * params.radius + 1
    filtered = _nd_median_filter(region[..., :COLOR_CHANNELS], size=(size, size, 1),
                                 mode='nearest')
    return merge_alpha(region, params.halo, interior(filtered, params.halo))


def bilateral_filter(region: np.ndarray, params: BilateralParams) -> np.ndarray:
    """
    Bilateral filter.

    Neighbour weight is the spatial Gaussian of its offset times the range
    Gaussian of its mean squared colour difference to the centre pixel.
    """
    radius = params.radius
    values = region[..., :COLOR_CHANNELS].astype(np.float64)
    out_h = values.shape[0] - 2 * radius
    out_w = values.shape[1] - 2 * radius
    center = values[radius:radius + out_h, radius:radius + out_w]

    accumulated = np.zeros_like(center)
    total_weight = np.zeros(center.shape[:2], dtype=np.float64)

    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            neighbour = values[radius + dy:radius + dy + out_h,
                               radius + dx:radius + dx + out_w]
            # Offsets and differences are scaled by sigma before squaring;
            # the centre always keeps weight 1
            sx = dx / params.spatial_sigma
            sy = dy / params.spatial_sigma
            spatial = math.exp(-0.5 * (sx * sx + sy * sy))
            with np.errstate(over='ignore'):
                scaled = (neighbour - center) / params.range_sigma
                distance = (scaled[..., 0] ** 2 + scaled[..., 1] ** 2 + scaled[..., 2] ** 2) / 3.0
            weight = spatial * np.exp(-0.5 * distance)
            accumulated += weight[..., np.newaxis] * neighbour
            total_weight += weight

    color = accumulated / total_weight[..., np.newaxis]
    return merge_alpha(region, params.halo, to_uint8(color))


def non_local_means(region: np.ndarray, params: NonLocalMeansParams) -> np.ndarray:
    """
    Non-local means.

    Every pixel in the search window (the centre included) is a candidate.
    Its weight is exp(-d / h^2), d being the mean squared difference between
    the patch around the target and the patch around the candidate.
    """
    search = params.search_radius
    patch = params.patch_radius
    halo = params.halo
    values = region[..., :COLOR_CHANNELS].astype(np.int64)
    out_h = values.shape[0] - 2 * halo
    out_w = values.shape[1] - 2 * halo

    # Pixels any target patch can touch
    span_h = out_h + 2 * patch
    span_w = out_w + 2 * patch
    target_patches = values[search:search + span_h, search:search + span_w]

    patch_area = float((2 * patch + 1) ** 2 * COLOR_CHANNELS)

    accumulated = np.zeros((out_h, out_w, COLOR_CHANNELS), dtype=np.float64)
    total_weight = np.zeros((out_h, out_w), dtype=np.float64)

    for dy in range(-search, search + 1):
        for dx in range(-search, search + 1):
            shifted = values[search + dy:search + dy + span_h,
                             search + dx:search + dx + span_w]
            squared = ((target_patches - shifted) ** 2).sum(axis=2)
            distance = box_sum(squared, patch) / patch_area
            with np.errstate(over='ignore'):
                weight = np.exp(-((distance / params.h) / params.h))

            candidate = values[halo + dy:halo + dy + out_h,
                               halo + dx:halo + dx + out_w]
            accumulated += weight[..., np.newaxis] * candidate
            total_weight += weight

    color = accumulated / total_weight[..., np.newaxis]
    return merge_alpha(region, halo, to_uint8(color))


def _tv_step(u: np.ndarray, f: np.ndarray, weight: float, step_size: float) -> np.ndarray:
    """One lagged-diffusivity fixed-point update; output shrinks by one pixel per side."""
    center = u[1:-1, 1:-1]
    north = u[:-2, 1:-1]
    south = u[2:, 1:-1]
    west = u[1:-1, :-2]
    east = u[1:-1, 2:]

    # Gradient magnitude at each half-step; the transverse component is the
    # mean of the central differences on both sides of the edge
    gy_e = (u[2:, 1:-1] + u[2:, 2:] - u[:-2, 1:-1] - u[:-2, 2:]) / 4.0
    gy_w = (u[2:, :-2] + u[2:, 1:-1] - u[:-2, :-2] - u[:-2, 1:-1]) / 4.0
    gx_s = (u[1:-1, 2:] + u[2:, 2:] - u[1:-1, :-2] - u[2:, :-2]) / 4.0
    gx_n = (u[:-2, 2:] + u[1:-1, 2:] - u[:-2, :-2] - u[1:-1, :-2]) / 4.0

    eps2 = TV_EPSILON * TV_EPSILON
    c_east = 1.0 / np.sqrt(eps2 + (east - center) ** 2 + gy_e ** 2)
    c_west = 1.0 / np.sqrt(eps2 + (center - west) ** 2 + gy_w ** 2)
    c_south = 1.0 / np.sqrt(eps2 + (south - center) ** 2 + gx_s ** 2)
    c_north = 1.0 / np.sqrt(eps2 + (center - north) ** 2 + gx_n ** 2)

    diffusivity = c_east + c_west + c_south + c_north
    neighbours = (c_east * east + c_west * west + c_south * south + c_north * north) / diffusivity

    # (f + w*sum(c*u)) / (1 + w*sum(c)) rewritten as a blend of f and the
    # weighted neighbour mean; an overflowing w*sum(c) gives a pull of 1
    with np.errstate(over='ignore', divide='ignore'):
        pull = 1.0 / (1.0 + 1.0 / (weight * diffusivity))
    fixed_point = f + pull * (neighbours - f)
    return center + step_size * (fixed_point - center)


def total_variation(region: np.ndarray, params: TotalVariationParams) -> np.ndarray:
    """
    Total-variation denoising for exactly `params.iterations` iterations.

    Each iteration moves every pixel toward a convex combination of its input
    value and its four neighbours, so values never leave the input range.
    """
    f = region[..., :COLOR_CHANNELS].astype(np.float64)
    u = f
    for _ in range(params.iterations):
        f = f[1:-1, 1:-1]
        u = _tv_step(u, f, params.weight, params.step_size)
    return merge_alpha(region, params.halo, to_uint8(u))


def total_variation_norm(image: np.ndarray) -> float:
    """Anisotropic discrete TV: sum of absolute forward differences over colour channels."""
    values = np.asarray(image)[..., :COLOR_CHANNELS].astype(np.float64)
    return float(np.abs(np.diff(values, axis=0)).sum() + np.abs(np.diff(values, axis=1)).sum())
