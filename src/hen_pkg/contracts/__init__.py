"""Core contracts and interfaces."""

from .errors import (
    HenError,
    ConfigError,
    ValidationError,
    ParseError,
    OutputParseError,
    RunnerError,
    StoreError,
)
from .runner import RunOutput, SimulationRunner

__all__ = [
    "HenError",
    "ConfigError",
    "ValidationError",
    "ParseError",
    "OutputParseError",
    "RunnerError",
    "StoreError",
    "RunOutput",
    "SimulationRunner",
]
