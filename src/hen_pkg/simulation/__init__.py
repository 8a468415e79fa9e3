"""Split, run and aggregate parallel simulations."""

from .inputs import SingleSimulationInput, ParallelSimulationInput, compute_checksum
from .output_parser import ParsedOutput, parse_simulation_output, parse_output_fields
from .report import (
    SingleSimulationFinished,
    SingleSimulationReport,
    ParallelSimulationFinished,
    ParallelSimulationReport,
)
from .runner import ExternalRunner, execute_parallel, run_single

__all__ = [
    "SingleSimulationInput",
    "ParallelSimulationInput",
    "compute_checksum",
    "ParsedOutput",
    "parse_simulation_output",
    "parse_output_fields",
    "SingleSimulationFinished",
    "SingleSimulationReport",
    "ParallelSimulationFinished",
    "ParallelSimulationReport",
    "ExternalRunner",
    "execute_parallel",
    "run_single",
]
