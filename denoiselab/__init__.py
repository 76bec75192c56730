"""
DenoiseLab: image denoising and enhancement engine

Applies spatial denoising filters and tonal adjustments to 8-bit RGB/RGBA
images, tile by tile across a worker pool, and searches filter catalogs for
the configuration that scores best.
"""

__version__ = "0.1.0"

from .config import load_config
from .exceptions import (
    DenoiseLabError,
    InvalidParameter,
    DimensionMismatch,
    OutOfBounds,
    NoCandidates,
)

__all__ = [
    "load_config",
    "DenoiseLabError",
    "InvalidParameter",
    "DimensionMismatch",
    "OutOfBounds",
    "NoCandidates",
]
