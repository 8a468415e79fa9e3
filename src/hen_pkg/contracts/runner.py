"""Simulation runner protocol definition."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class RunOutput:
    """Captured result of one external simulator invocation."""

    stdout: str
    stderr: str
    exit_status: int


@runtime_checkable
class SimulationRunner(Protocol):
    """Protocol for collaborators that execute one configuration text.
    
    A runner is handed the application name, the full configuration text of
    a single sub-run and the pegs file name. It must:
    - Write the configuration where the application expects it
    - Invoke the application synchronously
    - Return captured stdout, stderr and the exit status
    
    Runners are invoked concurrently from worker threads, one call per
    sub-run, so implementations must not share mutable state between calls.
    """
    
    def run(self, application: str, config_text: str, pegsfile: str) -> RunOutput:
        """Execute one configuration and capture its output.
        
        Args:
            application: Name of the simulator application
            config_text: Configuration text for this sub-run
            pegsfile: Name of the cross-section data file
            
        Returns:
            Captured stdout, stderr and exit status
            
        Raises:
            OSError: If the configuration cannot be written or the process
                cannot be started
        """
        ...
    
    def cleanup(self, application: str, config_text: str) -> None:
        """Remove temporary artifacts left behind by ``run``."""
        ...
