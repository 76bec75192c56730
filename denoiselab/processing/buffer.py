"""
Pixel buffer shared by every stage of the filtering engine.

A PixelBuffer owns a row-major grid of 8-bit samples with a fixed channel
count (RGB or RGBA). Dimensions never change after construction.
"""

import numbers
from typing import Sequence, Tuple, Union

import numpy as np

from ..exceptions import DimensionMismatch, InvalidParameter, OutOfBounds

SUPPORTED_CHANNELS = (3, 4)

# Kernels filter the colour channels only; alpha is passed through
COLOR_CHANNELS = 3

SampleData = Union[bytes, bytearray, memoryview, Sequence[int], np.ndarray]


class PixelBuffer:
    """
    Rectangular 8-bit image with 3 (RGB) or 4 (RGBA) channels.

    Samples are stored as a uint8 array of shape (height, width, channels);
    the flat sample sequence is that array in row-major order.
    """

    def __init__(self, width: int, height: int, channels: int, samples: SampleData):
        """
        Create a buffer from explicit dimensions and sample data.

        Args:
            width: Image width in pixels (> 0)
            height: Image height in pixels (> 0)
            channels: Channel count, 3 or 4
            samples: Flat row-major channel samples, length width*height*channels

        Raises:
            InvalidParameter: Non-positive dimensions or unsupported channel count
            DimensionMismatch: Sample count disagrees with the dimensions
        """
        if int(width) != width or width < 1 or int(height) != height or height < 1:
            raise InvalidParameter(f"Image dimensions must be positive, got {width}x{height}")
        if channels not in SUPPORTED_CHANNELS:
            raise InvalidParameter(f"Channel count must be 3 or 4, got {channels}")

        data = self._coerce_samples(samples)
        expected = int(width) * int(height) * int(channels)
        if data.size != expected:
            raise DimensionMismatch(
                f"Expected {expected} samples for {width}x{height}x{channels}, got {data.size}"
            )

        self._width = int(width)
        self._height = int(height)
        self._channels = int(channels)
        self._data = data.reshape(self._height, self._width, self._channels).copy()

    @staticmethod
    def _coerce_samples(samples: SampleData) -> np.ndarray:
        if isinstance(samples, (bytes, bytearray, memoryview)):
            return np.frombuffer(samples, dtype=np.uint8)

        array = np.asarray(samples)
        if array.dtype == np.uint8:
            return array.ravel()
        if array.size and not np.issubdtype(array.dtype, np.integer):
            raise InvalidParameter(f"Samples must be integers, got dtype {array.dtype}")
        if array.size and (array.min() < 0 or array.max() > 255):
            raise InvalidParameter("Samples must lie within 0-255")
        return array.astype(np.uint8).ravel()

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'PixelBuffer':
        """Build a buffer from a (height, width, channels) uint8 array."""
        array = np.asarray(array)
        if array.ndim != 3:
            raise DimensionMismatch(f"Expected (H, W, C) array, got shape {array.shape}")
        height, width, channels = array.shape
        return cls(width, height, channels, array)

    @classmethod
    def filled(cls, width: int, height: int, color: Sequence[int]) -> 'PixelBuffer':
        """Build a uniform buffer; channel count follows the colour length."""
        color = np.asarray(color, dtype=np.uint8)
        samples = np.tile(color, int(width) * int(height))
        return cls(width, height, len(color), samples)

    # Dimensions

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Array shape (height, width, channels)."""
        return self._data.shape

    @property
    def has_alpha(self) -> bool:
        return self._channels == 4

    # Data access

    @property
    def array(self) -> np.ndarray:
        """Read-only view of the samples as a (height, width, channels) array."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    def to_array(self) -> np.ndarray:
        """Writable copy of the samples."""
        return self._data.copy()

    @property
    def samples(self) -> bytes:
        """Flat row-major sample sequence."""
        return self._data.tobytes()

    def __len__(self) -> int:
        return self._data.size

    @staticmethod
    def _check_coordinates(x, y):
        for name, value in (('x', x), ('y', y)):
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise InvalidParameter(f"Pixel coordinate {name} must be an integer, got {value!r}")

    def _check_bounds(self, x: int, y: int):
        self._check_coordinates(x, y)
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise OutOfBounds(
                f"Pixel ({x}, {y}) outside {self._width}x{self._height} buffer"
            )

    def get_pixel(self, x: int, y: int) -> Tuple[int, ...]:
        """Channel values at (x, y); fails with OutOfBounds outside the image."""
        self._check_bounds(x, y)
        return tuple(int(v) for v in self._data[y, x])

    def get_pixel_clamped(self, x: int, y: int) -> Tuple[int, ...]:
        """Channel values at (x, y) with border replication outside the image."""
        self._check_coordinates(x, y)
        cx = min(max(x, 0), self._width - 1)
        cy = min(max(y, 0), self._height - 1)
        return tuple(int(v) for v in self._data[cy, cx])

    def set_pixel(self, x: int, y: int, values: Sequence[int]):
        """Write channel values at (x, y); fails with OutOfBounds outside the image."""
        self._check_bounds(x, y)
        values = np.asarray(values)
        if values.shape != (self._channels,):
            raise DimensionMismatch(
                f"Expected {self._channels} channel values, got {values.shape}"
            )
        if not np.issubdtype(values.dtype, np.integer):
            raise InvalidParameter(f"Channel values must be integers, got dtype {values.dtype}")
        if values.min() < 0 or values.max() > 255:
            raise InvalidParameter("Channel values must lie within 0-255")
        self._data[y, x] = values.astype(np.uint8)

    def padded(self, halo: int) -> np.ndarray:
        """Samples extended by `halo` pixels on every side using border replication."""
        if halo <= 0:
            return self.array
        return np.pad(self._data, ((halo, halo), (halo, halo), (0, 0)), mode='edge')

    def copy(self) -> 'PixelBuffer':
        return PixelBuffer.from_array(self._data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._data, other._data)

    def __repr__(self) -> str:
        return f"PixelBuffer(width={self._width}, height={self._height}, channels={self._channels})"
