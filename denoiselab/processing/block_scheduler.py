"""
Block scheduler for DenoiseLab.

Splits a buffer into a grid of tiles, expands each tile by the kernel's halo,
runs the kernel per tile (serially or on a thread pool) and writes each
tile's interior into its own disjoint slice of the output. The input is
padded once by border replication and only read by workers, so no locking is
needed beyond joining the pool.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from ..exceptions import InvalidParameter
from ..utils.logging import StructuredLogger
from .buffer import PixelBuffer
from .noise.kernels import (
    mean_filter, gaussian_filter, median_filter, bilateral_filter,
    non_local_means, total_variation
)
from .noise.models import FilterAlgorithm, FilterParameters
from .sharpening import unsharp_mask
from .tone.adjustments import brightness_contrast

logger = logging.getLogger(__name__)

DEFAULT_TILE_SIZE = 64

Kernel = Callable[[np.ndarray, FilterParameters], np.ndarray]

# One kernel per algorithm; adding an algorithm means adding an entry here
KERNELS: Dict[FilterAlgorithm, Kernel] = {
    FilterAlgorithm.MEAN: mean_filter,
    FilterAlgorithm.GAUSSIAN: gaussian_filter,
    FilterAlgorithm.MEDIAN: median_filter,
    FilterAlgorithm.BILATERAL: bilateral_filter,
    FilterAlgorithm.NON_LOCAL_MEANS: non_local_means,
    FilterAlgorithm.TOTAL_VARIATION: total_variation,
    FilterAlgorithm.BRIGHTNESS_CONTRAST: brightness_contrast,
    FilterAlgorithm.SHARPEN: unsharp_mask,
}


@dataclass(frozen=True)
class Tile:
    """
    Sub-rectangle of the output plus the halo its kernel reads around it.

    Coordinates are in image space; the haloed source region of the tile is
    [y - halo, y + height + halo) x [x - halo, x + width + halo).
    """
    x: int
    y: int
    width: int
    height: int
    halo: int = 0

    def source_slice(self, padded: np.ndarray) -> np.ndarray:
        """Haloed source region, taken from an image padded by `halo` on every side."""
        # Padding shifts image coordinates by +halo, cancelling the -halo offset
        return padded[self.y:self.y + self.height + 2 * self.halo,
                      self.x:self.x + self.width + 2 * self.halo]

    def output_slice(self, output: np.ndarray) -> np.ndarray:
        """This tile's exclusive region of the output array."""
        return output[self.y:self.y + self.height, self.x:self.x + self.width]


def _validate_tile_size(tile_size: Any) -> int:
    if isinstance(tile_size, bool) or not isinstance(tile_size, (int, np.integer)) or tile_size < 1:
        raise InvalidParameter(f"tile_size must be an integer >= 1, got {tile_size!r}")
    return int(tile_size)


def _validate_parameters(params: Any) -> FilterParameters:
    if not isinstance(params, FilterParameters) or params.algorithm not in KERNELS:
        raise InvalidParameter(f"Expected a filter parameter set, got {params!r}")
    return params


def plan_tiles(width: int, height: int, tile_size: int, halo: int = 0) -> List[Tile]:
    """Partition a width x height image into a row-major grid of disjoint tiles."""
    tile_size = _validate_tile_size(tile_size)
    tiles = []
    for y in range(0, height, tile_size):
        for x in range(0, width, tile_size):
            tiles.append(Tile(
                x=x,
                y=y,
                width=min(tile_size, width - x),
                height=min(tile_size, height - y),
                halo=halo
            ))
    return tiles


def apply_kernel(region: np.ndarray, params: FilterParameters) -> np.ndarray:
    """Run the kernel matching `params` on a haloed region."""
    return KERNELS[params.algorithm](region, params)


def apply_filter(buffer: PixelBuffer, params: FilterParameters) -> PixelBuffer:
    """Filter the whole buffer in one piece, without tiling."""
    params = _validate_parameters(params)
    return PixelBuffer.from_array(apply_kernel(buffer.padded(params.halo), params))


class BlockScheduler:
    """
    Applies a kernel over a buffer tile by tile.

    Output is identical for every tile size and for serial or parallel
    execution; tile size only trades parallel granularity against halo
    overhead.
    """

    def __init__(self, tile_size: int = DEFAULT_TILE_SIZE, parallel: bool = True,
                 max_workers: Optional[int] = None):
        """
        Initialize the scheduler.

        Args:
            tile_size: Tile side in pixels (>= 1, 32-256 recommended)
            parallel: Dispatch tiles on a thread pool instead of serially
            max_workers: Pool size (default: CPU count)
        """
        self.tile_size = _validate_tile_size(tile_size)
        if max_workers is not None and (isinstance(max_workers, bool) or max_workers < 1):
            raise InvalidParameter(f"max_workers must be >= 1, got {max_workers!r}")
        self.parallel = bool(parallel)
        self.max_workers = max_workers or os.cpu_count() or 1
        self._log = StructuredLogger(__name__)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'BlockScheduler':
        """Build a scheduler from the `scheduler` section of a configuration mapping."""
        section = config.get('scheduler', {}) or {}
        return cls(
            tile_size=section.get('tile_size', DEFAULT_TILE_SIZE),
            parallel=section.get('parallel', True),
            max_workers=section.get('max_workers')
        )

    def run(self, buffer: PixelBuffer, params: FilterParameters) -> PixelBuffer:
        """
        Filter `buffer` with the kernel for `params`.

        Args:
            buffer: Source image; never modified
            params: Validated parameter set selecting the kernel

        Returns:
            New buffer with the same dimensions and channel count
        """
        params = _validate_parameters(params)
        halo = params.halo
        tiles = plan_tiles(buffer.width, buffer.height, self.tile_size, halo)

        padded = buffer.padded(halo)
        padded.flags.writeable = False
        output = np.empty(buffer.shape, dtype=np.uint8)

        parallel = self.parallel and len(tiles) > 1 and self.max_workers > 1
        self._log.debug(
            "Scheduling kernel",
            algorithm=params.algorithm.value,
            tiles=len(tiles),
            tile_size=self.tile_size,
            halo=halo,
            parallel=parallel
        )

        if parallel:
            self._run_parallel(tiles, padded, output, params)
        else:
            for tile in tiles:
                self._process_tile(tile, padded, output, params)

        return PixelBuffer.from_array(output)

    __call__ = run

    @staticmethod
    def _process_tile(tile: Tile, padded: np.ndarray, output: np.ndarray,
                      params: FilterParameters):
        """Filter one tile and write its interior into its own output slice."""
        tile.output_slice(output)[...] = apply_kernel(tile.source_slice(padded), params)

    def _run_parallel(self, tiles: List[Tile], padded: np.ndarray, output: np.ndarray,
                      params: FilterParameters):
        workers = min(self.max_workers, len(tiles))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._process_tile, tile, padded, output, params): tile
                for tile in tiles
            }
            for future in as_completed(futures):
                # Re-raise worker failures in the caller
                future.result()
