"""
Auto-optimizer for DenoiseLab.

Runs every candidate of a fixed, bounded catalog through the block
scheduler, scores each result against the source image and keeps the best
one. Ties go to the faster candidate. Only the running best is retained.
"""

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from tqdm import tqdm

from ..exceptions import InvalidParameter, NoCandidates
from ..utils.logging import StructuredLogger
from ..utils.timing import MetricsCollector
from .block_scheduler import BlockScheduler
from .buffer import PixelBuffer
from .noise.models import (
    FilterAlgorithm, FilterParameters, MeanParams, GaussianParams, MedianParams,
    BilateralParams, NonLocalMeansParams, TotalVariationParams, BrightnessContrastParams,
    make_parameters, parameters_from_dict
)
from .quality import ScoreFunction, get_scorer
from .tone.adjustments import analyze_tone

logger = logging.getLogger(__name__)

# Upper bound on catalogs expanded from parameter ranges
MAX_CATALOG_SIZE = 512


@dataclass
class OptimizationRun:
    """One evaluated candidate."""
    parameters: FilterParameters
    score: float
    elapsed: float          # Seconds spent in the scheduler
    output: PixelBuffer

    @property
    def algorithm(self) -> FilterAlgorithm:
        return self.parameters.algorithm

    def beats(self, other: Optional['OptimizationRun']) -> bool:
        """Higher score wins; equal scores go to the faster run."""
        if other is None:
            return True
        if self.score != other.score:
            return self.score > other.score
        return self.elapsed < other.elapsed


@dataclass
class OptimizationResult:
    """Winner of a search plus bookkeeping about the search itself."""
    best: OptimizationRun
    evaluations: int
    total_elapsed: float
    tone: Optional[BrightnessContrastParams] = None
    output: Optional[PixelBuffer] = field(default=None)

    def __post_init__(self):
        if self.output is None:
            self.output = self.best.output

    @property
    def algorithm(self) -> FilterAlgorithm:
        return self.best.algorithm

    @property
    def parameters(self) -> FilterParameters:
        return self.best.parameters

    @property
    def score(self) -> float:
        return self.best.score

    def to_dict(self) -> Dict[str, Any]:
        return {
            'parameters': self.parameters.to_dict(),
            'score': self.score,
            'elapsed': self.best.elapsed,
            'evaluations': self.evaluations,
            'total_elapsed': self.total_elapsed,
            'tone': self.tone.to_dict() if self.tone else None,
        }


def default_catalog() -> List[FilterParameters]:
    """Built-in candidate list covering every denoising algorithm."""
    return [
        MeanParams(radius=1),
        MeanParams(radius=2),
        GaussianParams(radius=2, sigma=0.8),
        GaussianParams(radius=3, sigma=1.5),
        MedianParams(radius=1),
        MedianParams(radius=2),
        BilateralParams(radius=2, spatial_sigma=2.0, range_sigma=25.0),
        BilateralParams(radius=3, spatial_sigma=3.0, range_sigma=40.0),
        NonLocalMeansParams(search_radius=3, patch_radius=1, h=10.0),
        NonLocalMeansParams(search_radius=5, patch_radius=2, h=15.0),
        TotalVariationParams(weight=5.0, iterations=20, step_size=1.0),
        TotalVariationParams(weight=20.0, iterations=30, step_size=1.0),
    ]


def expand_catalog(ranges: Dict[str, Dict[str, Sequence[Any]]]) -> List[FilterParameters]:
    """
    Expand algorithm -> {knob: [values]} into the cartesian product of candidates.

    Example:
        expand_catalog({'median': {'radius': [1, 2]},
                        'gaussian': {'radius': [2], 'sigma': [0.8, 1.5]}})
    """
    catalog = []
    for algorithm, knobs in ranges.items():
        knobs = knobs or {}
        names = list(knobs)
        value_lists = [list(knobs[name]) if isinstance(knobs[name], (list, tuple))
                       else [knobs[name]] for name in names]
        for combination in itertools.product(*value_lists):
            catalog.append(make_parameters(algorithm, **dict(zip(names, combination))))
            if len(catalog) > MAX_CATALOG_SIZE:
                raise InvalidParameter(
                    f"Catalog expands to more than {MAX_CATALOG_SIZE} candidates"
                )
    return catalog


def catalog_from_config(section: Dict[str, Any]) -> List[FilterParameters]:
    """
    Read a catalog from the `optimizer` configuration section.

    `catalog` is an explicit list of parameter mappings and `ranges` a
    mapping for expand_catalog(); both may be combined. With neither, the
    built-in catalog is used.
    """
    catalog = [parameters_from_dict(entry) for entry in section.get('catalog') or []]
    if section.get('ranges'):
        catalog.extend(expand_catalog(section['ranges']))
    return catalog or default_catalog()


class AutoOptimizer:
    """
    Bounded search over (algorithm, parameters) candidates.

    Each candidate costs exactly one scheduler invocation.
    """

    def __init__(self, scheduler: Optional[BlockScheduler] = None,
                 scorer: Union[str, ScoreFunction, None] = 'balanced',
                 catalog: Optional[Iterable[FilterParameters]] = None,
                 max_candidates: Optional[int] = None,
                 collector: Optional[MetricsCollector] = None,
                 show_progress: bool = False):
        """
        Initialize the optimizer.

        Args:
            scheduler: Scheduler used for every candidate (default: BlockScheduler())
            scorer: Scorer name or callable (source, result) -> float
            catalog: Candidates to evaluate (default: default_catalog())
            max_candidates: Evaluate at most this many candidates of the catalog
            collector: Timing collector wrapped around every scheduler call
            show_progress: Show a progress bar while searching
        """
        if max_candidates is not None and (isinstance(max_candidates, bool)
                                           or max_candidates < 1):
            raise InvalidParameter(f"max_candidates must be >= 1, got {max_candidates!r}")

        self.scheduler = scheduler or BlockScheduler()
        self.scorer = get_scorer(scorer)
        self.catalog = list(catalog) if catalog is not None else default_catalog()
        self.max_candidates = max_candidates
        self.collector = collector or MetricsCollector()
        self.show_progress = show_progress
        self._log = StructuredLogger(__name__)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **overrides) -> 'AutoOptimizer':
        """Build an optimizer (and its scheduler) from a configuration mapping."""
        section = config.get('optimizer', {}) or {}
        options = {
            'scheduler': BlockScheduler.from_config(config),
            'scorer': section.get('scorer', 'balanced'),
            'catalog': catalog_from_config(section),
            'max_candidates': section.get('max_candidates'),
        }
        options.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**options)

    def optimize(self, buffer: PixelBuffer,
                 catalog: Optional[Iterable[FilterParameters]] = None,
                 auto_tone: bool = False) -> OptimizationResult:
        """
        Find the best-scoring candidate for `buffer`.

        Args:
            buffer: Source image; never modified
            catalog: Candidates for this call only (default: the optimizer's catalog)
            auto_tone: Apply the suggested brightness/contrast to the winner

        Returns:
            OptimizationResult with the best run

        Raises:
            NoCandidates: The catalog is empty
            InvalidParameter: A catalog entry is not a parameter set
        """
        candidates = list(catalog) if catalog is not None else list(self.catalog)
        if self.max_candidates is not None:
            candidates = candidates[:self.max_candidates]
        if not candidates:
            raise NoCandidates("Optimization catalog is empty")
        for candidate in candidates:
            if not isinstance(candidate, FilterParameters):
                raise InvalidParameter(f"Catalog entry is not a parameter set: {candidate!r}")

        best = None
        evaluations = 0

        with self.collector.timer() as watch:
            progress = tqdm(candidates, desc="Optimizing", disable=not self.show_progress)
            for params in progress:
                run = self._evaluate(buffer, params)
                evaluations += 1
                if run.beats(best):
                    best = run

        result = OptimizationResult(best=best, evaluations=evaluations,
                                    total_elapsed=watch.elapsed)

        if auto_tone:
            result.tone = analyze_tone(best.output).to_parameters()
            result.output = self.scheduler.run(best.output, result.tone)

        self._log.info(
            "Optimization finished",
            algorithm=best.algorithm.value,
            parameters=best.parameters.to_dict(),
            score=round(best.score, 4),
            evaluations=evaluations,
            total_elapsed=round(result.total_elapsed, 3)
        )
        return result

    def _evaluate(self, buffer: PixelBuffer, params: FilterParameters) -> OptimizationRun:
        output, elapsed = self.collector.measure(self.scheduler.run, buffer, params)
        score = float(self.scorer(buffer, output))
        if math.isnan(score):
            logger.warning(f"Scorer returned NaN for {params}; ranking it last")
            score = float('-inf')

        self._log.debug(
            "Evaluated candidate",
            parameters=params.to_dict(),
            score=round(score, 4),
            elapsed=round(elapsed, 4)
        )
        return OptimizationRun(parameters=params, score=score, elapsed=elapsed, output=output)
