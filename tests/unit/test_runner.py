"""Tests for concurrent sub-run execution."""

import subprocess
from unittest.mock import patch

import pytest

from hen_pkg.contracts.errors import RunnerError, ValidationError
from hen_pkg.domain.omittable import Available
from hen_pkg.egsinp.tokenizer import TokenStream
from hen_pkg.simulation.inputs import SingleSimulationInput, compute_checksum
from hen_pkg.simulation.runner import ExternalRunner, execute_parallel, run_single

from conftest import FakeRunner


@pytest.fixture
def prototype(sample_egsinp_path):
    return SingleSimulationInput.from_path("egs_chamber", sample_egsinp_path, "521icru")


class TestExecuteParallel:

    def test_outputs_follow_input_order(self, prototype, fake_runner):
        sim = prototype.splitn(8)
        finished = execute_parallel(sim, fake_runner, nthreads=3)
        assert len(finished.outputs) == 8
        for (s1, s2), out in zip(sim.seeds, finished.outputs):
            seeds = TokenStream.parse_string(out.input.content).get_value("initial seeds")
            assert seeds == f"{s1} {s2}"
            assert out.exit_status == 0
        assert len(fake_runner.runs) == 8
        assert len(fake_runner.cleaned) == 8

    def test_no_cleanup(self, prototype, fake_runner):
        execute_parallel(prototype.splitn(2), fake_runner, nthreads=1, cleanup=False)
        assert fake_runner.cleaned == []

    def test_invalid_input_runs_nothing(self, prototype, fake_runner):
        sim = prototype.split([1, 2], [(1, 1)])
        with pytest.raises(ValidationError):
            execute_parallel(sim, fake_runner)
        assert fake_runner.runs == []

    def test_report_end_to_end(self, prototype):
        runner = FakeRunner(regions=("A", "B"))
        report = prototype.splitn(4).run(runner, nthreads=2).report()
        assert report.simulation_finished == Available(True)
        dose = report.dose.unwrap()
        assert [name for name, _ in dose] == ["A", "B"]
        assert dose[0][1].value == pytest.approx(2.5e-13)

    def test_rerun_reproduces_dose(self, prototype):
        first = prototype.splitn(3).run(FakeRunner(), nthreads=2).report()
        second = first.rerun(FakeRunner(), nthreads=2)
        assert second.dose == first.dose


class TestRunSingle:

    def test_os_error_is_captured(self, prototype):
        class BrokenRunner(FakeRunner):
            def run(self, application, config_text, pegsfile):
                raise FileNotFoundError("egs_chamber: not found")

        runner = BrokenRunner()
        finished = run_single(prototype, runner)
        assert finished.exit_status == -1
        assert "not found" in finished.stderr
        assert runner.cleaned == [prototype.content]

    def test_non_zero_exit_is_recorded(self, prototype):
        finished = run_single(prototype, FakeRunner(exit_status=3, stdout="killed\n"))
        assert finished.exit_status == 3
        assert finished.stdout == "killed\n"


class TestExternalRunner:

    def test_missing_home(self, temp_dir):
        with pytest.raises(RunnerError, match="not found"):
            ExternalRunner(temp_dir / "missing")

    def test_run_writes_config_and_calls_application(self, temp_dir):
        (temp_dir / "egs_chamber").mkdir()
        runner = ExternalRunner(temp_dir)
        content = "ncase = 10"
        checksum = compute_checksum(content)
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"log", stderr=b"")

        with patch("hen_pkg.simulation.runner.subprocess.run", return_value=completed) as mock_run:
            out = runner.run("egs_chamber", content, "521icru")

        assert out.stdout == "log"
        assert out.exit_status == 0
        args, kwargs = mock_run.call_args
        assert args[0] == ["egs_chamber", "-i", checksum, "-p", "521icru"]
        assert kwargs["cwd"] == temp_dir / "egs_chamber"
        assert (temp_dir / "egs_chamber" / f"{checksum}.egsinp").read_text() == content

    def test_cleanup_removes_artifacts(self, temp_dir):
        app_dir = temp_dir / "egs_chamber"
        app_dir.mkdir()
        runner = ExternalRunner(temp_dir)
        content = "ncase = 10"
        checksum = compute_checksum(content)
        for ext in ("egsinp", "egsdat"):
            (app_dir / f"{checksum}.{ext}").write_text("x")
        (app_dir / "keep.egsinp").write_text("x")

        runner.cleanup("egs_chamber", content)

        assert sorted(p.name for p in app_dir.iterdir()) == ["keep.egsinp"]
