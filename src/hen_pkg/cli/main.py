"""Main CLI application."""

from pathlib import Path
from typing import List, Optional, Tuple
import json

import typer
from rich.console import Console
from rich.table import Table

from .. import app_api
from ..config import AppConfig, resolve_egs_home
from ..contracts.errors import HenError, ValidationError
from ..domain.omittable import Available
from ..io import load, save
from ..logging_setup import configure_logging
from ..simulation.report import ParallelSimulationReport

app = typer.Typer(
    name="hen",
    help="Run .egsinp files from anywhere - split, run and combine EGSnrc simulations",
    no_args_is_help=True
)
console = Console()

# logging flags given on the command line, applied over the configuration
_log_flags = {"verbose": False, "json_logs": False}


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Emit logs as JSON lines"
    ),
):
    """Configure logging for all commands."""
    _log_flags.update(verbose=verbose, json_logs=json_logs)
    configure_logging(level="DEBUG" if verbose else "INFO", json_logs=json_logs)


def _abort(error: HenError) -> None:
    console.print(f"❌ {error.message}", style="red")
    if error.details:
        console.print(f"Details: {error.details}")
    raise typer.Exit(1)


def _load_cfg(config: Optional[Path]) -> AppConfig:
    cfg = app_api.load_config_from_file(config)
    _configure_from(cfg)
    if config:
        console.print(f"✓ Loaded configuration from {config}")
    return cfg


def _configure_from(cfg: AppConfig) -> None:
    configure_logging(
        level="DEBUG" if _log_flags["verbose"] else cfg.logging.level,
        json_logs=_log_flags["json_logs"] or cfg.logging.json_logs,
    )


def _as_int(option: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{option} expects integers, got {value!r}")
    return value


def _parse_json_list(option: str, text: Optional[str]) -> Optional[list]:
    if text is None:
        return None
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {option}: {e}")
    if not isinstance(value, list):
        raise ValidationError(f"{option} must be a JSON list")
    return value


def _parse_seeds(text: Optional[str]) -> Optional[List[Tuple[int, int]]]:
    value = _parse_json_list("--seeds", text)
    if value is None:
        return None
    seeds = []
    for seed in value:
        if not isinstance(seed, list) or len(seed) != 2:
            raise ValidationError(f"Seeds must be pairs like [[1,2],[1,3]], got {seed!r}")
        seeds.append((_as_int("--seeds", seed[0]), _as_int("--seeds", seed[1])))
    return seeds


def _parse_ncases(text: Optional[str]) -> Optional[List[int]]:
    value = _parse_json_list("--ncases", text)
    if value is None:
        return None
    return [_as_int("--ncases", n) for n in value]


def _print_dose_table(report: ParallelSimulationReport) -> None:
    if not isinstance(report.dose, Available):
        console.print(f"Dose: {report.dose}", style="yellow")
        return
    table = Table(title="Dose")
    table.add_column("Region")
    table.add_column("Dose")
    table.add_column("Rel. std")
    for name, score in report.dose.value:
        table.add_row(name, f"{score.value:.4e}", f"{score.rstd * 100.0:.3f}%")
    console.print(table)


@app.command()
def run(
    input_path: Path = typer.Argument(..., metavar="INPUT", help="Input .egsinp or .heninp file"),
    output: Path = typer.Option(..., "--output", "-o", help="Report file to write"),
    application: Optional[str] = typer.Option(
        None, "--app", "-a", help="Name of the application"
    ),
    pegsfile: Optional[str] = typer.Option(
        None, "--pegsfile", "-p", help="Name of the pegsfile"
    ),
    nthreads: Optional[int] = typer.Option(
        None, "--nthreads", "-t", help="Worker threads; defaults to the number of cores"
    ),
    seeds: Optional[str] = typer.Option(
        None, "--seeds", help="Random seeds as JSON, e.g. [[1,2],[1,3],[4,5]]"
    ),
    ncases: Optional[str] = typer.Option(
        None, "--ncases", "-n", help="Cases per sub-run as JSON, e.g. [10000,10000,20000]"
    ),
    cleanup: Optional[bool] = typer.Option(
        None, "--cleanup/--no-cleanup", help="Remove per-run artifacts"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
):
    """Split a configuration into sub-runs, run them in parallel and save the report."""

    try:
        cfg = _load_cfg(config)

        # Apply command line overrides
        if application:
            cfg.runner.application = application
        if pegsfile:
            cfg.runner.pegsfile = pegsfile
        if nthreads is not None:
            if nthreads < 1:
                raise ValidationError("nthreads must be positive")
            cfg.run.nthreads = nthreads
        if cleanup is not None:
            cfg.run.cleanup = cleanup

        seed_list = _parse_seeds(seeds)
        ncase_list = _parse_ncases(ncases)

        sim = app_api.prepare_parallel_input(input_path, cfg, seeds=seed_list, ncases=ncase_list)
        console.print(f"✓ Prepared {len(sim.seeds)} sub-runs of {sim.prototype.filename}")

        runner = app_api.create_runner(cfg)
        with console.status("Running simulation..."):
            report = app_api.run_parallel_input(
                sim, runner, nthreads=cfg.run.nthreads, cleanup=cfg.run.cleanup
            )
        save(output, report)

        console.print(f"✅ Simulation completed: {output}", style="green")
        console.print(f"Total cpu time: {report.total_cpu_time}")
        console.print(f"Simulation finished: {report.simulation_finished}")
        _print_dose_table(report)

    except HenError as e:
        _abort(e)


@app.command()
def show(
    path: Path = typer.Argument(..., help="Report file"),
    what: str = typer.Argument("smart", help="What to show: smart, all, input or output"),
):
    """Show the content of a simulation report."""

    try:
        report = load(path, ParallelSimulationReport)
        text = app_api.render_report(report, what)
        console.print(text, markup=False, highlight=False, soft_wrap=True)
    except HenError as e:
        _abort(e)


@app.command()
def rerun(
    path: Path = typer.Argument(..., help="Report file of a finished simulation"),
    output: Path = typer.Option(..., "--output", "-o", help="Report file to write"),
    nthreads: Optional[int] = typer.Option(
        None, "--nthreads", "-t", help="Worker threads; defaults to the number of cores"
    ),
    cleanup: Optional[bool] = typer.Option(
        None, "--cleanup/--no-cleanup", help="Remove per-run artifacts"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
):
    """Rerun a finished simulation with the same seeds and case counts."""

    try:
        cfg = _load_cfg(config)
        runner = app_api.create_runner(cfg)
        with console.status("Running simulation..."):
            report = app_api.rerun_report(
                path,
                runner,
                nthreads=nthreads or cfg.run.nthreads,
                cleanup=cfg.run.cleanup if cleanup is None else cleanup,
            )
        save(output, report)
        console.print(f"✅ Rerun completed: {output}", style="green")
        _print_dose_table(report)
    except HenError as e:
        _abort(e)


@app.command()
def fmt(
    path: Path = typer.Argument(..., help="Configuration file to reformat in place"),
):
    """Reformat an .egsinp file."""

    try:
        app_api.format_input_file(path)
        console.print(f"✅ Formatted {path}", style="green")
    except HenError as e:
        _abort(e)


@app.command()
def split(
    input_path: Path = typer.Argument(..., metavar="INPUT", help="Configuration file to split"),
    nfiles: Optional[int] = typer.Option(
        None, "--nfiles", help="Number of fragment files"
    ),
    nthreads: Optional[int] = typer.Option(
        None, "--nthreads", "-t", help="Sub-runs per fragment (threads per machine)"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Directory for the fragments; defaults to the input's directory"
    ),
    application: Optional[str] = typer.Option(
        None, "--app", "-a", help="Name of the application"
    ),
    pegsfile: Optional[str] = typer.Option(
        None, "--pegsfile", "-p", help="Name of the pegsfile"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
):
    """Split an .egsinp file into .heninp fragments runnable on a cluster."""

    try:
        cfg = _load_cfg(config)
        if application:
            cfg.runner.application = application
        if pegsfile:
            cfg.runner.pegsfile = pegsfile

        written = app_api.split_into_fragments(
            input_path,
            nfiles=cfg.split.nfiles if nfiles is None else nfiles,
            nthreads=cfg.split.nthreads if nthreads is None else nthreads,
            config=cfg,
            output_dir=output,
        )
        for fragment in written:
            console.print(f"✓ {fragment}")
        console.print(f"✅ Wrote {len(written)} fragments", style="green")
    except HenError as e:
        _abort(e)


@app.command()
def combine(
    reports: List[Path] = typer.Argument(..., help="Report files to combine"),
    output: Path = typer.Option(..., "--output", "-o", help="Directory for the combined reports"),
):
    """Combine reports of fragments that share one prototype."""

    try:
        combined = app_api.combine_report_files(reports, output)
        table = Table(title="Combined Reports")
        table.add_column("Output")
        table.add_column("Sub-runs")
        table.add_column("Finished")
        for out_path, report in combined.items():
            table.add_row(str(out_path), str(len(report.single_runs)), str(report.simulation_finished))
        console.print(table)
    except HenError as e:
        _abort(e)


@app.command()
def info():
    """Display package information and diagnostics."""

    from .. import __version__

    console.print(f"hen v{__version__}")
    console.print()

    try:
        cfg = app_api.load_config_from_file(None)
        _configure_from(cfg)
    except HenError as e:
        console.print(f"Could not load configuration: {e.message}")
        return

    console.print(f"Application: {cfg.runner.application}")
    console.print(f"Pegsfile: {cfg.runner.pegsfile}")
    console.print(f"Threads: {cfg.run.nthreads or 'all cores'}")
    try:
        console.print(f"Application home: {resolve_egs_home(cfg)}")
    except HenError:
        console.print("Application home: not configured")


if __name__ == "__main__":
    app()
