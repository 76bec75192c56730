"""
Shared fixtures for DenoiseLab tests.
"""

import numpy as np
import pytest

from denoiselab.processing.buffer import PixelBuffer


def make_noisy_buffer(width: int, height: int, channels: int = 3,
                      noise: float = 20.0, seed: int = 0) -> PixelBuffer:
    """Horizontal gradient with a vertical step edge plus Gaussian noise."""
    rng = np.random.default_rng(seed)
    base = np.zeros((height, width, channels), dtype=np.float64)
    base[..., :3] = np.linspace(40, 200, width)[np.newaxis, :, np.newaxis]
    base[:, width // 2:, :3] += 30
    if channels == 4:
        base[..., 3] = rng.integers(0, 256, (height, width))
    base[..., :3] += rng.normal(0, noise, (height, width, 3))
    return PixelBuffer.from_array(np.clip(np.rint(base), 0, 255).astype(np.uint8))


@pytest.fixture
def noisy_buffer():
    """Small noisy RGB image."""
    return make_noisy_buffer(24, 20)


@pytest.fixture
def noisy_factory():
    """Factory for noisy images of any size."""
    return make_noisy_buffer
