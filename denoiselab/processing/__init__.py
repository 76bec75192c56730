"""
Filtering engine for DenoiseLab

Includes the pixel buffer, filter kernels, the block scheduler and the
auto-optimizer.
"""

from .buffer import PixelBuffer
from .block_scheduler import BlockScheduler, Tile, apply_filter, plan_tiles
from .optimizer import AutoOptimizer, OptimizationResult, OptimizationRun, default_catalog

__all__ = [
    "PixelBuffer",
    "BlockScheduler",
    "Tile",
    "apply_filter",
    "plan_tiles",
    "AutoOptimizer",
    "OptimizationResult",
    "OptimizationRun",
    "default_catalog",
]
