"""Tests for run context timing and logging setup."""

import json

import pytest
import structlog

from hen_pkg.engine import RunContext
from hen_pkg.logging_setup import configure_logging


def test_runtime_metadata():
    context = RunContext(run_id="abc123", nthreads=2)
    context.start_run(2)
    for index in (1, 0):
        with context.time_run(index, f"checksum{index}"):
            pass
    assert context.end_run() >= 0.0

    metadata = context.get_runtime_metadata()
    assert metadata["run_id"] == "abc123"
    assert metadata["nthreads"] == 2
    assert list(metadata["run_times_s"]) == [0, 1]


def test_default_threads():
    assert RunContext(run_id="x").nthreads >= 1


def test_failed_sub_run_is_timed():
    context = RunContext(run_id="x", nthreads=1)
    with pytest.raises(RuntimeError):
        with context.time_run(0, "c"):
            raise RuntimeError("boom")
    assert 0 in context.get_runtime_metadata()["run_times_s"]


def test_json_logs(capsys):
    configure_logging(level="INFO", json_logs=True)
    structlog.get_logger().info("Sub-run completed", index=3)
    structlog.get_logger().debug("hidden")
    lines = capsys.readouterr().err.strip().splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["event"] == "Sub-run completed"
    assert record["index"] == 3
    assert record["level"] == "info"
