"""Parser for the textual stdout of one simulator run.

The log is read strictly line by line:

1. skip to the second ``==`` banner (title block),
2. read ``key......value`` header lines up to the next banner,
3. skip to ``Finished simulation``,
4. parse ``Total cpu time for this run``,
5. skip to the dashed rule and read the dose table up to a blank line,
6. skip to ``finishSimulation``; the run finished iff nothing follows.

Steps 4-6 are independently fallible and reported as ``Fail`` per field.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, TextIO, Tuple
import io
import re

from ..contracts.errors import OutputParseError
from ..domain.omittable import Available, Fail, Omittable
from ..domain.uncertain import UncertainF64

DoseTable = List[Tuple[str, UncertainF64]]

_BANNER_RE = re.compile(r"^==(=*)")
_DOT_KEY_VALUE_RE = re.compile(r"^(.*[^\.])\.\.\.*(.*)$")
_FINISHED_RE = re.compile(r"^Finished simulation")
_CPU_TIME_LINE_RE = re.compile(r"^Total cpu time for this run")
_CPU_TIME_RE = re.compile(r"^Total cpu time for this run:\s*(.*) \(sec.\)")
_RULE_RE = re.compile(r"^---*")
_DOSE_RE = re.compile(r"^\s*(.*)\s\s*(.*) \+/\- (.*)%")
_FINISH_MARKER_RE = re.compile(r"finishSimulation")


@dataclass
class ParsedOutput:
    """Fields extracted from one run's stdout."""

    dose: Omittable[DoseTable]
    total_cpu_time: Omittable[float]
    simulation_finished: Omittable[bool]
    header: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def failed(cls, message: str) -> "ParsedOutput":
        return cls(
            dose=Fail(message),
            total_cpu_time=Fail(message),
            simulation_finished=Fail(message),
        )


def parse_dot_separated_key_value(line: str) -> Optional[Tuple[str, str]]:
    """Split ``configuration.....linux64`` into its key and value."""
    match = _DOT_KEY_VALUE_RE.match(line)
    if not match:
        return None
    return match.group(1), match.group(2)


def parse_total_cpu_time(line: str) -> float:
    match = _CPU_TIME_RE.match(line)
    if not match:
        raise OutputParseError(f"Cannot parse total cpu time from {line}")
    try:
        return float(match.group(1))
    except ValueError as exc:
        raise OutputParseError(f"Cannot parse total cpu time from {line}") from exc


def parse_geometry_dose(line: str) -> Tuple[str, UncertainF64]:
    """Parse ``name   value +/- percent%`` into a named dose score."""
    match = _DOSE_RE.match(line)
    if not match:
        raise OutputParseError(f"Cannot match {_DOSE_RE.pattern!r} on {line!r}.")
    name = match.group(1).strip()
    raw_value, raw_rstd = match.group(2).strip(), match.group(3).strip()
    try:
        value = float(raw_value)
    except ValueError as exc:
        raise OutputParseError(f"Cannot parse dose value from {raw_value!r}") from exc
    try:
        rstd_percent = float(raw_rstd)
    except ValueError as exc:
        raise OutputParseError(f"Cannot parse dose rstd from {raw_rstd!r}") from exc
    return name, UncertainF64.from_value_rstd(value, rstd_percent / 100.0)


def _read_line(reader: TextIO) -> Optional[str]:
    line = reader.readline()
    return line if line else None


def _read_line_until(reader: TextIO, pattern: Pattern[str]) -> Optional[str]:
    while True:
        line = _read_line(reader)
        if line is None or pattern.search(line):
            return line


def _read_header(reader: TextIO) -> Dict[str, str]:
    header: Dict[str, str] = {}
    while True:
        line = _read_line(reader)
        if line is None:
            raise OutputParseError("Unexpected end of file")
        if _BANNER_RE.match(line):
            return header
        kv = parse_dot_separated_key_value(line.strip())
        if kv is not None:
            header[kv[0]] = kv[1]


def _read_dose_table(reader: TextIO) -> DoseTable:
    if _read_line_until(reader, _RULE_RE) is None:
        raise OutputParseError("Cannot find dose")
    table: DoseTable = []
    while True:
        line = _read_line(reader)
        if line is None or not line.strip():
            return table
        table.append(parse_geometry_dose(line))


def _read_finished(reader: TextIO) -> bool:
    if _read_line_until(reader, _FINISH_MARKER_RE) is None:
        raise OutputParseError("Cannot find finishSimulation")
    return _read_line(reader) is None


def parse_simulation_output(reader: TextIO) -> ParsedOutput:
    """Parse one run's stdout from a text stream.

    Raises:
        OutputParseError: If the stream ends before the header block closes
    """
    _read_line_until(reader, _BANNER_RE)
    _read_line_until(reader, _BANNER_RE)
    header = _read_header(reader)
    _read_line_until(reader, _FINISHED_RE)

    def cpu_time() -> float:
        line = _read_line_until(reader, _CPU_TIME_LINE_RE)
        if line is None:
            raise OutputParseError("Cannot find Total cpu time for this run")
        return parse_total_cpu_time(line)

    total_cpu_time = Omittable.from_result(cpu_time)
    dose = Omittable.from_result(lambda: _read_dose_table(reader))
    simulation_finished = Omittable.from_result(lambda: _read_finished(reader))
    return ParsedOutput(
        dose=dose,
        total_cpu_time=total_cpu_time,
        simulation_finished=simulation_finished,
        header=header,
    )


def parse_output_fields(stdout: str) -> ParsedOutput:
    """Parse ``stdout``, failing every field with one message on early EOF."""
    try:
        return parse_simulation_output(io.StringIO(stdout))
    except OutputParseError as exc:
        return ParsedOutput.failed(exc.message)
