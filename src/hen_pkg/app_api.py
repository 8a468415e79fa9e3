"""Main API facade for the hen package.

This module provides the interface used by the CLI and by scripts driving
cluster jobs. All high-level operations flow through these functions.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
import structlog

from .config import (
    AppConfig,
    default_config,
    load_config,
    resolve_egs_home,
    validate_config,
)
from .config.constants import PARALLEL_INPUT_EXTENSION, REPORT_EXTENSION
from .contracts.errors import ValidationError
from .contracts.runner import SimulationRunner
from .egsinp.tokenizer import Seed, format_file
from .io import load, save
from .simulation.inputs import ParallelSimulationInput, SingleSimulationInput
from .simulation.report import ParallelSimulationReport
from .simulation.runner import ExternalRunner

logger = structlog.get_logger()

RENDER_MODES = ("smart", "all", "input", "output")


def get_default_config() -> AppConfig:
    """Get default configuration.

    Returns:
        Default configuration with sensible defaults
    """
    return default_config()


def load_config_from_file(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load and validate configuration.

    Args:
        path: Path to configuration file. ``None`` searches the standard
            locations and falls back to defaults.

    Returns:
        Loaded and validated configuration

    Raises:
        ConfigError: If configuration cannot be loaded or is invalid
    """
    config = load_config(path)
    validate_config(config)
    return config


def create_runner(config: AppConfig) -> ExternalRunner:
    """Build the external runner described by ``config.runner``.

    Raises:
        ConfigError: If no application home directory is configured
        RunnerError: If the home directory does not exist
    """
    return ExternalRunner(
        resolve_egs_home(config),
        artifact_extensions=config.runner.artifact_extensions,
    )


def load_prototype(
    path: Union[str, Path],
    application: str,
    pegsfile: str,
) -> SingleSimulationInput:
    """Read a configuration file as the prototype of a parallel run."""
    return SingleSimulationInput.from_path(application, path, pegsfile)


def prepare_parallel_input(
    path: Union[str, Path],
    config: AppConfig,
    seeds: Optional[Sequence[Seed]] = None,
    ncases: Optional[Sequence[int]] = None,
) -> ParallelSimulationInput:
    """Turn ``path`` into a parallel input ready to run.

    Stored ``.heninp`` fragments are loaded as they are. Any other file is
    read as a configuration and split over ``seeds`` / ``ncases``, or over
    the configured thread count when neither is given.

    Raises:
        ValidationError: If explicit seeds and case counts differ in length
        ParseError: If the configuration cannot be read or split
        StoreError: If a stored fragment cannot be loaded
    """
    path = Path(path)
    if path.suffix == f".{PARALLEL_INPUT_EXTENSION}":
        sim = load(path, ParallelSimulationInput)
        logger.info("Loaded parallel input", path=str(path), n_runs=len(sim.seeds))
        return sim

    if seeds is not None and ncases is not None and len(seeds) != len(ncases):
        raise ValidationError(
            f"Got {len(seeds)} seeds, but {len(ncases)} ncases"
        )
    prototype = load_prototype(path, config.runner.application, config.runner.pegsfile)
    nthreads = config.run.nthreads or os.cpu_count() or 1
    sim = prototype.split_fancy(ncases, seeds, nthreads)
    logger.info("Prepared parallel input", path=str(path), n_runs=len(sim.seeds))
    return sim


def run_parallel_input(
    sim: ParallelSimulationInput,
    runner: SimulationRunner,
    nthreads: Optional[int] = None,
    cleanup: bool = True,
) -> ParallelSimulationReport:
    """Execute all sub-runs of ``sim`` and aggregate their report."""
    return sim.run(runner, nthreads=nthreads, cleanup=cleanup).report()


def rerun_report(
    path: Union[str, Path],
    runner: SimulationRunner,
    nthreads: Optional[int] = None,
    cleanup: bool = True,
) -> ParallelSimulationReport:
    """Load a stored report and execute its input once more."""
    report = load(path, ParallelSimulationReport)
    return report.rerun(runner, nthreads=nthreads, cleanup=cleanup)


def split_into_fragments(
    path: Union[str, Path],
    nfiles: int,
    nthreads: int,
    config: AppConfig,
    output_dir: Optional[Union[str, Path]] = None,
) -> List[Path]:
    """Split a configuration into ``nfiles`` stored fragments.

    Each fragment holds ``nthreads`` sub-runs and is written as
    ``<stem>_<i>.heninp``, by default next to the input file.

    Returns:
        Paths of the written fragments, in order

    Raises:
        ValidationError: If ``nfiles`` or ``nthreads`` is not positive
    """
    if nthreads <= 0:
        raise ValidationError("NTHREADS > 0 must hold.")
    if nfiles <= 0:
        raise ValidationError("NFILES > 0 must hold.")

    path = Path(path)
    prototype = load_prototype(path, config.runner.application, config.runner.pegsfile)
    full = prototype.splitn(nthreads * nfiles)
    out_dir = Path(output_dir) if output_dir is not None else path.parent

    written: List[Path] = []
    for i, fragment in enumerate(full.chunks(nthreads)):
        fragment_path = out_dir / f"{path.stem}_{i}.{PARALLEL_INPUT_EXTENSION}"
        save(fragment_path, fragment)
        written.append(fragment_path)
    logger.info("Wrote fragments", input=str(path), n_files=len(written))
    return written


def combine_reports(reports: Sequence[ParallelSimulationReport]) -> ParallelSimulationReport:
    """Merge reports of shards of the same prototype."""
    return ParallelSimulationReport.combine(reports)


def combine_report_files(
    paths: Sequence[Union[str, Path]],
    output_dir: Union[str, Path],
) -> Dict[Path, ParallelSimulationReport]:
    """Combine stored reports per prototype and save one report per group.

    Reports are grouped by their prototype filename; each group is written
    to ``<output_dir>/<filename-stem>.henout``.

    Returns:
        Mapping of written path to combined report
    """
    output_dir = Path(output_dir)
    groups: Dict[Path, List[ParallelSimulationReport]] = {}
    for path in paths:
        report = load(path, ParallelSimulationReport)
        stem = Path(report.input.prototype.filename).stem
        out_path = output_dir / f"{stem}.{REPORT_EXTENSION}"
        groups.setdefault(out_path, []).append(report)

    combined: Dict[Path, ParallelSimulationReport] = {}
    for out_path, reports in groups.items():
        report = combine_reports(reports)
        save(out_path, report)
        logger.info("Combined reports", output=str(out_path), n_reports=len(reports))
        combined[out_path] = report
    return combined


def format_input_file(path: Union[str, Path]) -> str:
    """Rewrite a configuration file in canonical form and return the text."""
    return format_file(path)


def render_report(report: ParallelSimulationReport, what: str = "smart") -> str:
    """Render ``report`` as text.

    Args:
        what: One of ``smart``, ``all``, ``input`` or ``output`` (case
            insensitive)

    Raises:
        ValidationError: For an unknown mode
    """
    mode = what.lower()
    if mode == "smart":
        return report.to_string_smart()
    if mode == "all":
        return report.to_string_all()
    if mode == "input":
        return report.to_string_input()
    if mode == "output":
        return report.to_string_output()
    raise ValidationError(f"Unknown report view {what!r}, expected one of {RENDER_MODES}")
