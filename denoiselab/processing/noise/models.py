"""
Parameter models for the filtering kernels.

Each algorithm has its own frozen parameter set carrying only the knobs it
needs. Construction validates every knob and fails with InvalidParameter, so
an instance that exists is always safe to hand to a kernel.
"""

import math
import numbers
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, ClassVar, Dict, Type

from ...exceptions import InvalidParameter


class FilterAlgorithm(Enum):
    """Closed catalog of kernels the engine can run."""
    MEAN = "mean"                          # Box average
    GAUSSIAN = "gaussian"                  # Gaussian-weighted average
    MEDIAN = "median"                      # Per-channel order statistic
    BILATERAL = "bilateral"                # Spatial x range weighted average
    NON_LOCAL_MEANS = "nlm"                # Patch-similarity weighted average
    TOTAL_VARIATION = "tv"                 # Iterative TV regularization
    BRIGHTNESS_CONTRAST = "brightness_contrast"
    SHARPEN = "sharpen"                    # Unsharp mask


def _check_radius(name: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 1:
        raise InvalidParameter(f"{name} must be an integer >= 1, got {value!r}")


def _check_finite(name: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise InvalidParameter(f"{name} must be a finite number, got {value!r}")


def _check_positive(name: str, value: Any):
    _check_finite(name, value)
    if value <= 0:
        raise InvalidParameter(f"{name} must be > 0, got {value!r}")


@dataclass(frozen=True)
class FilterParameters:
    """Base class for all parameter sets."""
    algorithm: ClassVar[FilterAlgorithm]

    @property
    def halo(self) -> int:
        """Border pixels a kernel reads on each side of an output pixel."""
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        data = {'algorithm': self.algorithm.value}
        data.update(asdict(self))
        return data


@dataclass(frozen=True)
class MeanParams(FilterParameters):
    """Box filter over a (2r+1)^2 window."""
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.MEAN
    radius: int = 1

    def __post_init__(self):
        _check_radius("radius", self.radius)

    @property
    def halo(self) -> int:
        return self.radius


@dataclass(frozen=True)
class GaussianParams(FilterParameters):
    """Gaussian filter truncated to a (2r+1)^2 window."""
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.GAUSSIAN
    radius: int = 2
    sigma: float = 1.0

    def __post_init__(self):
        _check_radius("radius", self.radius)
        _check_positive("sigma", self.sigma)

    @property
    def halo(self) -> int:
        return self.radius


@dataclass(frozen=True)
class MedianParams(FilterParameters):
    """Per-channel median over a (2r+1)^2 window."""
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.MEDIAN
    radius: int = 1

    def __post_init__(self):
        _check_radius("radius", self.radius)

    @property
    def halo(self) -> int:
        return self.radius


@dataclass(frozen=True)
class BilateralParams(FilterParameters):
    """Edge-preserving bilateral filter."""
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.BILATERAL
    radius: int = 2
    spatial_sigma: float = 2.0
    range_sigma: float = 30.0      # In 0-255 sample units

    def __post_init__(self):
        _check_radius("radius", self.radius)
        _check_positive("spatial_sigma", self.spatial_sigma)
        _check_positive("range_sigma", self.range_sigma)

    @property
    def halo(self) -> int:
        return self.radius


@dataclass(frozen=True)
class NonLocalMeansParams(FilterParameters):
    """Non-local means with square search window and square patches."""
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.NON_LOCAL_MEANS
    search_radius: int = 5
    patch_radius: int = 2
    h: float = 10.0                # Filtering strength, 0-255 sample units

    def __post_init__(self):
        _check_radius("search_radius", self.search_radius)
        _check_radius("patch_radius", self.patch_radius)
        _check_positive("h", self.h)

    @property
    def halo(self) -> int:
        return self.search_radius + self.patch_radius


@dataclass(frozen=True)
class TotalVariationParams(FilterParameters):
    """
    Total-variation denoising.

    `weight` is the regularization weight lambda; larger values favour a
    flatter result over fidelity to the input. `iterations` is a hard budget.
    """
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.TOTAL_VARIATION
    weight: float = 10.0
    iterations: int = 30
    step_size: float = 1.0         # Relaxation factor in (0, 1]

    def __post_init__(self):
        _check_positive("weight", self.weight)
        _check_radius("iterations", self.iterations)
        _check_positive("step_size", self.step_size)
        if self.step_size > 1:
            raise InvalidParameter(f"step_size must be <= 1, got {self.step_size!r}")

    @property
    def halo(self) -> int:
        # Each iteration reads the 3x3 neighbourhood of the previous iterate
        return self.iterations


@dataclass(frozen=True)
class BrightnessContrastParams(FilterParameters):
    """
    Per-pixel affine tone adjustment.

    output = (input - pivot) * contrast + pivot + brightness
    With the default pivot of 0 this is input * contrast + brightness.

    With `brightness_first` the offset is applied and clamped to 0-255
    before contrast, as two separate slider steps:
    output = (clamp(input + brightness) - pivot) * contrast + pivot
    """
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.BRIGHTNESS_CONTRAST
    brightness: float = 0.0
    contrast: float = 1.0
    pivot: float = 0.0
    brightness_first: bool = False

    def __post_init__(self):
        _check_finite("brightness", self.brightness)
        _check_finite("contrast", self.contrast)
        _check_finite("pivot", self.pivot)
        if not isinstance(self.brightness_first, bool):
            raise InvalidParameter(
                f"brightness_first must be a bool, got {self.brightness_first!r}"
            )

    @property
    def halo(self) -> int:
        return 0


@dataclass(frozen=True)
class SharpenParams(FilterParameters):
    """Unsharp mask: input + strength * (input - gaussian_blur(input))."""
    algorithm: ClassVar[FilterAlgorithm] = FilterAlgorithm.SHARPEN
    strength: float = 1.0
    radius: int = 1
    sigma: float = 1.0

    def __post_init__(self):
        _check_positive("strength", self.strength)
        _check_radius("radius", self.radius)
        _check_positive("sigma", self.sigma)

    @property
    def halo(self) -> int:
        return self.radius


PARAMETER_TYPES: Dict[FilterAlgorithm, Type[FilterParameters]] = {
    FilterAlgorithm.MEAN: MeanParams,
    FilterAlgorithm.GAUSSIAN: GaussianParams,
    FilterAlgorithm.MEDIAN: MedianParams,
    FilterAlgorithm.BILATERAL: BilateralParams,
    FilterAlgorithm.NON_LOCAL_MEANS: NonLocalMeansParams,
    FilterAlgorithm.TOTAL_VARIATION: TotalVariationParams,
    FilterAlgorithm.BRIGHTNESS_CONTRAST: BrightnessContrastParams,
    FilterAlgorithm.SHARPEN: SharpenParams,
}

DENOISE_ALGORITHMS = (
    FilterAlgorithm.MEAN,
    FilterAlgorithm.GAUSSIAN,
    FilterAlgorithm.MEDIAN,
    FilterAlgorithm.BILATERAL,
    FilterAlgorithm.NON_LOCAL_MEANS,
    FilterAlgorithm.TOTAL_VARIATION,
)


def parse_algorithm(tag: Any) -> FilterAlgorithm:
    """Resolve an algorithm tag ('gaussian', FilterAlgorithm.GAUSSIAN, ...)."""
    if isinstance(tag, FilterAlgorithm):
        return tag
    try:
        return FilterAlgorithm(str(tag).lower())
    except ValueError:
        known = ", ".join(a.value for a in FilterAlgorithm)
        raise InvalidParameter(f"Unknown algorithm {tag!r} (expected one of: {known})")


def make_parameters(algorithm: Any, **knobs) -> FilterParameters:
    """Build the parameter set for `algorithm`, using defaults for missing knobs."""
    params_type = PARAMETER_TYPES[parse_algorithm(algorithm)]
    try:
        return params_type(**knobs)
    except TypeError as e:
        raise InvalidParameter(f"Invalid knobs for {params_type.__name__}: {e}")


def parameters_from_dict(data: Dict[str, Any]) -> FilterParameters:
    """Rebuild a parameter set from the output of FilterParameters.to_dict()."""
    if 'algorithm' not in data:
        raise InvalidParameter("Parameter mapping has no 'algorithm' tag")
    knobs = {key: value for key, value in data.items() if key != 'algorithm'}
    return make_parameters(data['algorithm'], **knobs)
