#!/usr/bin/env python3
"""
DenoiseLab Command Line Interface

Decodes images, runs them through the filtering engine and writes the
results back out. Provides commands for denoising, tone adjustment,
automatic filter selection and configuration bootstrapping.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import click

from denoiselab.config import get_config_value, get_default_config, load_config, save_config
from denoiselab.exceptions import DenoiseLabError
from denoiselab.io import load_buffer, save_buffer
from denoiselab.processing.block_scheduler import BlockScheduler
from denoiselab.processing.noise.models import (
    DENOISE_ALGORITHMS, PARAMETER_TYPES, FilterParameters,
    make_parameters, parse_algorithm
)
from denoiselab.processing.optimizer import AutoOptimizer
from denoiselab.processing.quality import SCORERS
from denoiselab.processing.tone.adjustments import tone_parameters
from denoiselab.utils.logging import ProcessingStats, setup_console_logging
from denoiselab.utils.timing import MetricsCollector

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.bmp', '.gif', '.tif', '.tiff', '.webp'}

# CLI option name -> parameter field name
KNOB_OPTIONS = {
    'radius': 'radius',
    'sigma': 'sigma',
    'spatial_sigma': 'spatial_sigma',
    'range_sigma': 'range_sigma',
    'search_radius': 'search_radius',
    'patch_radius': 'patch_radius',
    'strength_h': 'h',
    'weight': 'weight',
    'iterations': 'iterations',
    'step_size': 'step_size',
}


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    DenoiseLab - image denoising and enhancement

    Applies mean, gaussian, median, bilateral, non-local means and
    total-variation filters plus brightness, contrast and sharpening, tile by
    tile across a worker pool.
    """
    ctx.ensure_object(dict)

    ctx.obj['config'] = load_config(config)

    level = get_config_value(ctx.obj['config'], 'logging.level', 'INFO')
    if verbose:
        level = 'DEBUG'
    elif quiet:
        level = 'ERROR'
    if not logging.getLogger().handlers:
        setup_console_logging(
            level=level,
            color=get_config_value(ctx.obj['config'], 'logging.color', True),
            fmt=get_config_value(ctx.obj['config'], 'logging.format',
                                 '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
    else:
        logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))

    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


def _scheduler(config: Dict[str, Any], tile_size: Optional[int],
               parallel: Optional[bool]) -> BlockScheduler:
    """Scheduler from config, with command line overrides."""
    section = dict(config.get('scheduler') or {})
    if tile_size is not None:
        section['tile_size'] = tile_size
    if parallel is not None:
        section['parallel'] = parallel
    return BlockScheduler.from_config({'scheduler': section})


def _build_parameters(config: Dict[str, Any], algorithm: str,
                      options: Dict[str, Any]) -> FilterParameters:
    """Configured defaults for `algorithm`, overridden by the knobs given on the command line."""
    algorithm_tag = parse_algorithm(algorithm)
    knobs = dict(get_config_value(config, f'filters.{algorithm_tag.value}', {}) or {})
    accepted = {f.name for f in dataclasses.fields(PARAMETER_TYPES[algorithm_tag])}

    for option, field_name in KNOB_OPTIONS.items():
        value = options.get(option)
        if value is None:
            continue
        if field_name not in accepted:
            logger.warning(f"--{option.replace('_', '-')} does not apply to {algorithm_tag.value}; ignored")
            continue
        knobs[field_name] = value

    return make_parameters(algorithm_tag, **{k: v for k, v in knobs.items() if k in accepted})


def _collect_inputs(input_path: Path, output_path: Path):
    """Pairs of (source, destination); directories map file by file."""
    if input_path.is_dir():
        sources = sorted(p for p in input_path.iterdir()
                         if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS)
        return [(source, output_path / source.name) for source in sources]
    return [(input_path, output_path)]


@main.command()
@click.argument('input_path', type=click.Path(exists=True, path_type=Path))
@click.argument('output_path', type=click.Path(path_type=Path))
@click.option('--algorithm', '-a', default='gaussian', show_default=True,
              type=click.Choice([a.value for a in DENOISE_ALGORITHMS]),
              help='Denoising algorithm')
@click.option('--radius', type=int, help='Window radius (mean, gaussian, median, bilateral)')
@click.option('--sigma', type=float, help='Gaussian sigma')
@click.option('--spatial-sigma', type=float, help='Bilateral spatial sigma')
@click.option('--range-sigma', type=float, help='Bilateral range sigma (0-255 units)')
@click.option('--search-radius', type=int, help='Non-local means search radius')
@click.option('--patch-radius', type=int, help='Non-local means patch radius')
@click.option('--h', 'strength_h', type=float, help='Non-local means filtering strength')
@click.option('--weight', type=float, help='Total-variation regularization weight')
@click.option('--iterations', type=int, help='Total-variation iteration count')
@click.option('--step-size', type=float, help='Total-variation step size (0-1]')
@click.option('--tile-size', type=int, help='Tile side in pixels')
@click.option('--parallel/--serial', default=None, help='Dispatch tiles on a worker pool')
@click.pass_context
def denoise(ctx, input_path: Path, output_path: Path, algorithm: str,
            tile_size: Optional[int], parallel: Optional[bool], **knobs):
    """
    Denoise an image, or every image in a directory.

    INPUT_PATH: Image file or directory of images

    OUTPUT_PATH: Output file, or output directory when INPUT_PATH is a directory
    """
    config = ctx.obj['config']
    quiet = ctx.obj.get('quiet', False)
    collector = MetricsCollector()

    try:
        params = _build_parameters(config, algorithm, knobs)
        scheduler = _scheduler(config, tile_size, parallel)
    except DenoiseLabError as e:
        raise click.ClickException(str(e))

    jobs = _collect_inputs(input_path, output_path)
    stats = ProcessingStats()
    stats.set_total(len(jobs))

    for source, destination in jobs:
        try:
            buffer = load_buffer(source)
            output, elapsed = collector.measure(scheduler.run, buffer, params)
            save_buffer(output, destination)
        except (DenoiseLabError, OSError) as e:
            logger.error(f"Failed to process {source}: {e}")
            stats.add_error(str(source), str(e))
            continue

        stats.add_result(processing_time=elapsed)
        if not quiet:
            click.echo(f"{source.name}: {params.algorithm.value} in {elapsed:.3f}s -> {destination}")

    if len(jobs) > 1 and not quiet:
        stats.print_summary()
    if stats.failed_files:
        raise click.ClickException(f"{stats.failed_files} of {len(jobs)} images failed")


@main.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('output_path', type=click.Path(path_type=Path))
@click.option('--brightness', '-b', type=click.FloatRange(-1.0, 1.0), default=0.0,
              show_default=True, help='Brightness slider (-1 to 1)')
@click.option('--contrast', '-k', type=click.FloatRange(-1.0, 1.0), default=0.0,
              show_default=True, help='Contrast slider (-1 to 1)')
@click.option('--sharpen', '-s', type=click.FloatRange(min=0.0), default=0.0,
              show_default=True, help='Unsharp mask strength (0 disables)')
@click.option('--tile-size', type=int, help='Tile side in pixels')
@click.option('--parallel/--serial', default=None, help='Dispatch tiles on a worker pool')
@click.pass_context
def adjust(ctx, input_path: Path, output_path: Path, brightness: float, contrast: float,
           sharpen: float, tile_size: Optional[int], parallel: Optional[bool]):
    """
    Adjust brightness and contrast, then optionally sharpen.

    INPUT_PATH: Image file

    OUTPUT_PATH: Output file
    """
    config = ctx.obj['config']
    collector = MetricsCollector()

    try:
        scheduler = _scheduler(config, tile_size, parallel)
        buffer = load_buffer(input_path)
        with collector.timer() as watch:
            result = scheduler.run(buffer, tone_parameters(brightness, contrast))
            if sharpen > 0:
                knobs = dict(get_config_value(config, 'filters.sharpen', {}) or {})
                knobs['strength'] = sharpen
                result = scheduler.run(result, make_parameters('sharpen', **knobs))
        save_buffer(result, output_path)
    except (DenoiseLabError, OSError) as e:
        raise click.ClickException(str(e))

    if not ctx.obj.get('quiet', False):
        click.echo(f"Adjusted {input_path.name} in {watch.elapsed:.3f}s -> {output_path}")


@main.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('output_path', type=click.Path(path_type=Path))
@click.option('--scorer', type=click.Choice(sorted(SCORERS)), help='Quality metric')
@click.option('--max-candidates', '-n', type=click.IntRange(min=1),
              help='Evaluate at most this many catalog entries')
@click.option('--auto-tone', is_flag=True, help='Apply suggested brightness/contrast to the winner')
@click.option('--tile-size', type=int, help='Tile side in pixels')
@click.option('--parallel/--serial', default=None, help='Dispatch tiles on a worker pool')
@click.option('--progress/--no-progress', default=False, help='Show a progress bar')
@click.pass_context
def optimize(ctx, input_path: Path, output_path: Path, scorer: Optional[str],
             max_candidates: Optional[int], auto_tone: bool, tile_size: Optional[int],
             parallel: Optional[bool], progress: bool):
    """
    Search the filter catalog for the best-scoring configuration.

    INPUT_PATH: Image file

    OUTPUT_PATH: Output file for the winning result
    """
    config = ctx.obj['config']

    try:
        optimizer = AutoOptimizer.from_config(
            config,
            scheduler=_scheduler(config, tile_size, parallel),
            scorer=scorer,
            max_candidates=max_candidates,
            show_progress=progress
        )
        buffer = load_buffer(input_path)
        result = optimizer.optimize(buffer, auto_tone=auto_tone)
        save_buffer(result.output, output_path)
    except (DenoiseLabError, OSError) as e:
        raise click.ClickException(str(e))

    if not ctx.obj.get('quiet', False):
        knobs = {k: v for k, v in result.parameters.to_dict().items() if k != 'algorithm'}
        click.echo(f"Best: {result.algorithm.value} {knobs}")
        click.echo(f"Score: {result.score:.4f} ({result.evaluations} candidates evaluated)")
        click.echo(f"Elapsed: {result.best.elapsed:.3f}s (search {result.total_elapsed:.3f}s)")
        if result.tone is not None:
            click.echo(f"Tone: brightness {result.tone.brightness:+.1f}, "
                       f"contrast x{result.tone.contrast:.2f}")


@main.command('init-config')
@click.argument('path', type=click.Path(dir_okay=False, path_type=Path))
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def init_config(path: Path, force: bool):
    """Write the default configuration to PATH."""
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    if not save_config(get_default_config(), path):
        raise click.ClickException(f"Could not write {path}")
    click.echo(f"Wrote default configuration to {path}")


if __name__ == '__main__':
    main()
