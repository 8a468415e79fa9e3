"""Per-run reports and their aggregation into one parallel report.

A ``ParallelSimulationReport`` never stores aggregates independently of its
sub-runs: ``total_cpu_time``, ``simulation_finished`` and ``dose`` are
recomputed from ``single_runs`` whenever a report is constructed. Per-run
failures travel as ``Fail`` values, so one broken sub-run degrades the
affected aggregate instead of aborting the report.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from ..config.constants import SECTION_WIDTH
from ..contracts.errors import ValidationError
from ..domain.omittable import Available, Fail, Omittable, Omitted, map2
from ..domain.uncertain import UncertainF64
from .inputs import ParallelSimulationInput, SingleSimulationInput
from .output_parser import DoseTable, ParsedOutput, parse_output_fields

if TYPE_CHECKING:
    from ..contracts.runner import SimulationRunner


def _encode_dose(table: DoseTable) -> List[List[Any]]:
    return [[name, score.to_dict()] for name, score in table]


def _decode_dose(data: List[List[Any]]) -> DoseTable:
    return [(name, UncertainF64.from_dict(score)) for name, score in data]


@dataclass(frozen=True)
class SingleSimulationFinished:
    """Raw outcome of one sub-run."""

    input: SingleSimulationInput
    stdout: str
    stderr: str
    exit_status: int

    def parse_output(self) -> ParsedOutput:
        return parse_output_fields(self.stdout)

    def report(self) -> "SingleSimulationReport":
        """Report that keeps diagnostics only when the run did not finish."""
        out = self.parse_output()
        finished = out.simulation_finished == Available(True)

        def keep(value):
            return Omitted() if finished else Available(value)

        return SingleSimulationReport(
            input=keep(self.input),
            stderr=keep(self.stderr),
            stdout=keep(self.stdout),
            exit_status=Available(self.exit_status),
            dose=out.dose,
            total_cpu_time=out.total_cpu_time,
            simulation_finished=out.simulation_finished,
        )

    def report_full(self) -> "SingleSimulationReport":
        """Report that keeps input, stdout and stderr regardless of outcome."""
        out = self.parse_output()
        return SingleSimulationReport(
            input=Available(self.input),
            stderr=Available(self.stderr),
            stdout=Available(self.stdout),
            exit_status=Available(self.exit_status),
            dose=out.dose,
            total_cpu_time=out.total_cpu_time,
            simulation_finished=out.simulation_finished,
        )


@dataclass(frozen=True)
class SingleSimulationReport:
    """Parsed result of one sub-run."""

    input: Omittable[SingleSimulationInput] = field(default_factory=Omitted)
    stderr: Omittable[str] = field(default_factory=Omitted)
    stdout: Omittable[str] = field(default_factory=Omitted)
    exit_status: Omittable[int] = field(default_factory=Omitted)
    dose: Omittable[DoseTable] = field(default_factory=Omitted)
    total_cpu_time: Omittable[float] = field(default_factory=Omitted)
    simulation_finished: Omittable[bool] = field(default_factory=Omitted)

    def __str__(self) -> str:
        return f"{self.input}\n{self.stdout}\n{self.stderr}\n"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": self.input.to_dict(lambda inp: inp.to_dict()),
            "stderr": self.stderr.to_dict(),
            "stdout": self.stdout.to_dict(),
            "exit_status": self.exit_status.to_dict(),
            "dose": self.dose.to_dict(_encode_dose),
            "total_cpu_time": self.total_cpu_time.to_dict(),
            "simulation_finished": self.simulation_finished.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SingleSimulationReport":
        return cls(
            input=Omittable.from_dict(data["input"], SingleSimulationInput.from_dict),
            stderr=Omittable.from_dict(data["stderr"]),
            stdout=Omittable.from_dict(data["stdout"]),
            exit_status=Omittable.from_dict(data["exit_status"], int),
            dose=Omittable.from_dict(data["dose"], _decode_dose),
            total_cpu_time=Omittable.from_dict(data["total_cpu_time"], float),
            simulation_finished=Omittable.from_dict(data["simulation_finished"], bool),
        )


@dataclass(frozen=True)
class ParallelSimulationFinished:
    """Raw outcomes of all sub-runs, in input order."""

    input: ParallelSimulationInput
    outputs: List[SingleSimulationFinished]

    def report(self) -> "ParallelSimulationReport":
        # the first run keeps full detail as an example
        single_runs = [out.report() for out in self.outputs]
        if self.outputs:
            single_runs[0] = self.outputs[0].report_full()
        return ParallelSimulationReport(input=self.input, single_runs=single_runs)


def compute_total_cpu_time(single_runs: Sequence[SingleSimulationReport]) -> Omittable[float]:
    total: Omittable[float] = Available(0.0)
    for run in single_runs:
        total = map2(lambda x, y: x + y, total, run.total_cpu_time)
    return total


def compute_simulation_finished(single_runs: Sequence[SingleSimulationReport]) -> Omittable[bool]:
    finished: Omittable[bool] = Available(True)
    for run in single_runs:
        finished = map2(lambda x, y: x and y, finished, run.simulation_finished)
    return finished


def _sum_doses(tables: List[DoseTable]) -> DoseTable:
    if not tables:
        return []
    combined = list(tables[0])
    for table in tables[1:]:
        if len(table) != len(combined):
            raise ValidationError("Simulations have inconsistent numbers of scoring geometries.")
        for i, ((name, score), (name_ret, score_ret)) in enumerate(zip(table, combined)):
            if name != name_ret:
                raise ValidationError("Simulations have inconsistent scoring regions.")
            combined[i] = (name_ret, score_ret + score)
    weight = UncertainF64.from_value_var(1.0 / len(tables), 0.0)
    return [(name, (score * weight).mask_nan()) for name, score in combined]


def compute_dose(single_runs: Sequence[SingleSimulationReport]) -> Omittable[DoseTable]:
    """Mean dose per region over all sub-runs.

    Every sub-run must provide a dose table with the same ordered regions.
    Regions whose combined rstd is undefined (zero dose) get rstd 1.0.
    """
    tables: List[DoseTable] = []
    for run in single_runs:
        if isinstance(run.dose, Fail):
            return run.dose
        if not isinstance(run.dose, Available):
            return Fail("Omitted")
        tables.append(run.dose.value)
    return Omittable.from_result(lambda: _sum_doses(tables))


def compute_efficiency(dose: Omittable[DoseTable], total_cpu_time: Omittable[float]) -> Omittable[float]:
    """Mean over regions of ``1 / rvar / cpu_time``."""

    def inner(table: DoseTable, cpu_time: float) -> float:
        if not table:
            return float("nan")
        rvar = np.array([score.rvar for _, score in table], dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(np.mean(1.0 / rvar / cpu_time))

    return map2(inner, dose, total_cpu_time)


@dataclass(frozen=True)
class ParallelSimulationReport:
    """Aggregate report over all sub-runs of a parallel input."""

    input: ParallelSimulationInput
    single_runs: List[SingleSimulationReport] = field(default_factory=list)
    total_cpu_time: Omittable[float] = field(default_factory=Omitted)
    simulation_finished: Omittable[bool] = field(default_factory=Omitted)
    dose: Omittable[DoseTable] = field(default_factory=Omitted)

    def __post_init__(self):
        # aggregates are always derived from single_runs
        object.__setattr__(self, "single_runs", list(self.single_runs))
        object.__setattr__(self, "total_cpu_time", compute_total_cpu_time(self.single_runs))
        object.__setattr__(self, "simulation_finished", compute_simulation_finished(self.single_runs))
        object.__setattr__(self, "dose", compute_dose(self.single_runs))

    def recalculate(self) -> "ParallelSimulationReport":
        return ParallelSimulationReport(input=self.input, single_runs=self.single_runs)

    @staticmethod
    def combine(reports: Sequence["ParallelSimulationReport"]) -> "ParallelSimulationReport":
        """Merge reports of independently executed shards of one prototype.

        Raises:
            ValidationError: If ``reports`` is empty, prototypes differ or
                seeds collide across shards
        """
        combined_input = ParallelSimulationInput.combine([report.input for report in reports])
        single_runs: List[SingleSimulationReport] = []
        for report in reports:
            single_runs.extend(report.single_runs)
        return ParallelSimulationReport(input=combined_input, single_runs=single_runs)

    def rerun(
        self,
        runner: "SimulationRunner",
        nthreads: Optional[int] = None,
        cleanup: bool = True,
    ) -> "ParallelSimulationReport":
        """Execute this report's input again and report the new outcome."""
        return self.input.run(runner, nthreads=nthreads, cleanup=cleanup).report()

    def compute_efficiency(self) -> Omittable[float]:
        return compute_efficiency(self.dose, self.total_cpu_time)

    # Rendering

    @staticmethod
    def string_section(title: str) -> str:
        return f"\n{' ' + title + ' ':#^{SECTION_WIDTH}}\n"

    @staticmethod
    def string_key_omittable(key: str, value: Omittable[Any]) -> str:
        if isinstance(value, Omitted):
            return ""
        return f"{key}: {value}"

    def to_string_smart(self) -> str:
        return str(self)

    def to_string_all(self) -> str:
        return "\n".join([
            self.string_section("Input"),
            self.to_string_input(),
            self.string_section("Example"),
            self.to_string_first_single_run(),
            self.string_section("Output"),
            self.to_string_output(),
        ])

    def to_string_input(self) -> str:
        return str(self.input.prototype)

    def to_string_first_single_run(self) -> str:
        if not self.single_runs:
            return ""
        return str(self.single_runs[0])

    def string_dose(self) -> str:
        if isinstance(self.dose, Available):
            return "".join(
                f"{name}: {score.value} +- {score.rstd * 100.0}%\n"
                for name, score in self.dose.value
            )
        return str(self.dose)

    def to_string_output(self) -> str:
        lines = [
            self.string_key_omittable("Total cpu time", self.total_cpu_time),
            self.string_key_omittable("Simulation finished", self.simulation_finished),
            self.string_dose(),
            self.string_key_omittable("Efficiency", self.compute_efficiency()),
        ]
        return "".join(line + "\n" for line in lines)

    def __str__(self) -> str:
        return self.to_string_all() + "\n"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": self.input.to_dict(),
            "single_runs": [run.to_dict() for run in self.single_runs],
            "total_cpu_time": self.total_cpu_time.to_dict(),
            "simulation_finished": self.simulation_finished.to_dict(),
            "dose": self.dose.to_dict(_encode_dose),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParallelSimulationReport":
        return cls(
            input=ParallelSimulationInput.from_dict(data["input"]),
            single_runs=[SingleSimulationReport.from_dict(run) for run in data["single_runs"]],
        )
