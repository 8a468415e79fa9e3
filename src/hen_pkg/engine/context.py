"""Run context for parallel simulation execution."""

from __future__ import annotations
import os
import threading
import time
from typing import Dict, Any, Optional
import structlog


class RunContext:
    """Context for one parallel run with logging and per-sub-run timing."""
    
    def __init__(
        self,
        run_id: str,
        nthreads: Optional[int] = None,
        cleanup: bool = True,
        logger: Optional[structlog.BoundLogger] = None
    ):
        self.run_id = run_id
        self.nthreads = nthreads or os.cpu_count() or 1
        self.cleanup = cleanup
        
        if logger is None:
            self.logger = structlog.get_logger().bind(run_id=run_id)
        else:
            self.logger = logger.bind(run_id=run_id)
        
        self._start_time: Optional[float] = None
        self._run_times: Dict[int, float] = {}
        self._lock = threading.Lock()
        
        self.metadata: Dict[str, Any] = {
            "run_id": run_id,
            "nthreads": self.nthreads,
            "cleanup": cleanup,
        }
    
    def start_run(self, n_runs: int) -> None:
        """Mark start of the fan-out."""
        self._start_time = time.perf_counter()
        self.logger.info("Parallel simulation started", n_runs=n_runs, nthreads=self.nthreads)
    
    def end_run(self) -> float:
        """Mark end of the fan-in and return the wall time in seconds."""
        if self._start_time is None:
            return 0.0
        
        runtime = time.perf_counter() - self._start_time
        self.logger.info("Parallel simulation completed", runtime_s=runtime)
        return runtime
    
    def time_run(self, index: int, checksum: str) -> "_SubRunTimer":
        """Context manager timing sub-run ``index``."""
        return _SubRunTimer(self, index, checksum)
    
    def get_runtime_metadata(self) -> Dict[str, Any]:
        metadata = self.metadata.copy()
        with self._lock:
            run_times = dict(sorted(self._run_times.items()))
        metadata.update({
            "run_times_s": run_times,
            "total_runtime_s": sum(run_times.values())
        })
        return metadata


class _SubRunTimer:
    """Context manager for timing one sub-run."""
    
    def __init__(self, context: RunContext, index: int, checksum: str):
        self.context = context
        self.index = index
        self.checksum = checksum
        self.start_time: Optional[float] = None
    
    def __enter__(self):
        self.start_time = time.perf_counter()
        self.context.logger.debug("Sub-run started", index=self.index, checksum=self.checksum)
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            runtime = time.perf_counter() - self.start_time
            with self.context._lock:
                self.context._run_times[self.index] = runtime
            
            if exc_type is None:
                self.context.logger.info(
                    "Sub-run completed",
                    index=self.index,
                    checksum=self.checksum,
                    runtime_s=runtime
                )
            else:
                self.context.logger.error(
                    "Sub-run failed",
                    index=self.index,
                    checksum=self.checksum,
                    runtime_s=runtime,
                    error=str(exc_val)
                )
