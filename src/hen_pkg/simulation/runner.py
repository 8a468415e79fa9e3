"""Concurrent execution of sub-runs through a ``SimulationRunner``."""

from __future__ import annotations
from multiprocessing.pool import ThreadPool
from pathlib import Path
from typing import Optional, Sequence, Union
import subprocess

import structlog

from ..config.constants import ARTIFACT_EXTENSIONS
from ..contracts.errors import RunnerError
from ..contracts.runner import RunOutput, SimulationRunner
from ..engine.context import RunContext
from .inputs import ParallelSimulationInput, SingleSimulationInput, compute_checksum
from .report import ParallelSimulationFinished, SingleSimulationFinished

logger = structlog.get_logger()


class ExternalRunner:
    """Runs an EGSnrc-style application from its home directory.

    The configuration is written to ``<egs_home>/<application>/<checksum>.egsinp``
    and the application is started as ``<application> -i <checksum> -p <pegsfile>``
    inside that directory.
    """

    def __init__(
        self,
        egs_home: Union[str, Path],
        artifact_extensions: Sequence[str] = ARTIFACT_EXTENSIONS,
    ):
        self.egs_home = Path(egs_home)
        self.artifact_extensions = tuple(artifact_extensions)
        if not self.egs_home.is_dir():
            raise RunnerError(f"Application home directory not found: {self.egs_home}")

    def app_dir(self, application: str) -> Path:
        return self.egs_home / application

    def artifact_path(self, application: str, checksum: str, ext: str) -> Path:
        return self.app_dir(application) / f"{checksum}.{ext}"

    def run(self, application: str, config_text: str, pegsfile: str) -> RunOutput:
        checksum = compute_checksum(config_text)
        self.artifact_path(application, checksum, "egsinp").write_text(config_text)
        completed = subprocess.run(
            [application, "-i", checksum, "-p", pegsfile],
            cwd=self.app_dir(application),
            capture_output=True,
        )
        return RunOutput(
            stdout=completed.stdout.decode("utf-8", errors="replace"),
            stderr=completed.stderr.decode("utf-8", errors="replace"),
            exit_status=completed.returncode,
        )

    def cleanup(self, application: str, config_text: str) -> None:
        checksum = compute_checksum(config_text)
        for ext in self.artifact_extensions:
            path = self.artifact_path(application, checksum, ext)
            if path.exists():
                path.unlink()


def run_single(
    sim: SingleSimulationInput,
    runner: SimulationRunner,
    cleanup: bool = True,
) -> SingleSimulationFinished:
    """Execute one sub-run; process and I/O failures end up in the record."""
    try:
        output = runner.run(sim.application, sim.content, sim.pegsfile)
    except OSError as exc:
        logger.error("Runner failed", checksum=sim.checksum, error=str(exc))
        output = RunOutput(stdout="", stderr=str(exc), exit_status=-1)
    finally:
        if cleanup:
            try:
                runner.cleanup(sim.application, sim.content)
            except OSError as exc:
                logger.warning("Cleanup failed", checksum=sim.checksum, error=str(exc))
    return SingleSimulationFinished(
        input=sim,
        stdout=output.stdout,
        stderr=output.stderr,
        exit_status=output.exit_status,
    )


def execute_parallel(
    sim: ParallelSimulationInput,
    runner: SimulationRunner,
    nthreads: Optional[int] = None,
    cleanup: bool = True,
) -> ParallelSimulationFinished:
    """Run every sub-run of ``sim`` on a bounded thread pool.

    Blocks until all sub-runs are done. The output order matches the order
    of ``sim.seeds`` / ``sim.ncases``.

    Raises:
        ValidationError: If seeds and case counts are inconsistent
        ParseError: If the prototype cannot be split
    """
    sim.validate()
    children = sim.children()
    context = RunContext(
        run_id=sim.prototype.checksum[:12],
        nthreads=nthreads,
        cleanup=cleanup,
    )

    def run_child(indexed):
        index, child = indexed
        with context.time_run(index, child.checksum):
            finished = run_single(child, runner, cleanup=cleanup)
        if finished.exit_status != 0:
            context.logger.warning(
                "Sub-run exited with non-zero status",
                index=index,
                exit_status=finished.exit_status,
            )
        return finished

    context.start_run(len(children))
    with ThreadPool(processes=context.nthreads) as pool:
        outputs = pool.map(run_child, list(enumerate(children)))
    context.end_run()

    return ParallelSimulationFinished(input=sim, outputs=outputs)
