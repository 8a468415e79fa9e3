"""Tests for the simulator stdout parser."""

import io

import pytest

from hen_pkg.contracts.errors import OutputParseError
from hen_pkg.domain.omittable import Available, Fail
from hen_pkg.domain.uncertain import UncertainF64
from hen_pkg.simulation.output_parser import (
    parse_dot_separated_key_value,
    parse_geometry_dose,
    parse_output_fields,
    parse_simulation_output,
    parse_total_cpu_time,
)


class TestLineParsers:

    def test_dot_separated_key_value(self):
        assert parse_dot_separated_key_value("configuration...linux64") == ("configuration", "linux64")
        assert parse_dot_separated_key_value("no dots here") is None

    def test_geometry_dose(self):
        name, score = parse_geometry_dose("Block_                    0.0000e+00 +/- 100.000% \n")
        assert name == "Block_"
        assert score == UncertainF64.from_value_rstd(0.0, 1.0)

        name, score = parse_geometry_dose("Block_                    2.1867e-16 +/- 54.499 % \n")
        assert name == "Block_"
        assert score.value == pytest.approx(2.1867e-16)
        assert score.rstd == pytest.approx(0.54499)

    def test_geometry_dose_garbage(self):
        with pytest.raises(OutputParseError):
            parse_geometry_dose("Block_ nothing to see")

    def test_total_cpu_time(self):
        line = "Total cpu time for this run:            1997.04 (sec.) 0.5547(hours)"
        assert parse_total_cpu_time(line) == pytest.approx(1997.04)
        with pytest.raises(OutputParseError):
            parse_total_cpu_time("Total cpu time for this run: soon")


class TestFullLog:

    def test_finished_log(self, finished_log):
        out = parse_simulation_output(io.StringIO(finished_log))
        assert out.total_cpu_time == Available(1997.04)
        assert out.simulation_finished == Available(True)
        dose = out.dose.unwrap()
        assert len(dose) == 4
        assert dose[0] == ("PSS_Box", UncertainF64.from_value_rstd(0.0, 1.0))
        name, score = dose[1]
        assert name == "Messwelt_0"
        assert score.value == pytest.approx(5.6425e-13)
        assert score.rstd == pytest.approx(0.955e-2)
        assert dose[3][0] == "Messwelt_2"

    def test_header(self, finished_log):
        out = parse_output_fields(finished_log)
        assert out.header["configuration"] == "linux64"
        assert out.header["user code"] == "egs_chamber"
        assert out.header["pegs file"] == "521icru in HEN_HOUSE"

    def test_trailing_output_means_not_finished(self, truncated_log):
        out = parse_output_fields(truncated_log)
        assert out.simulation_finished == Available(False)
        assert out.dose.is_available()

    def test_missing_cpu_time_is_per_field(self, finished_log):
        log = finished_log.replace("Total cpu time for this run", "Total time")
        out = parse_output_fields(log)
        assert isinstance(out.total_cpu_time, Fail)
        assert "Total cpu time" in out.total_cpu_time.message
        # the cpu time search consumed the rest of the log
        assert isinstance(out.dose, Fail)

    def test_broken_dose_line(self, finished_log):
        log = finished_log.replace("5.6127e-13", "not-a-number")
        out = parse_output_fields(log)
        assert out.total_cpu_time == Available(1997.04)
        assert isinstance(out.dose, Fail)
        assert out.simulation_finished == Available(True)

    @pytest.mark.parametrize("stdout", ["", "application crashed\n", "==\n==\nkey....value\n"])
    def test_early_end_fails_every_field(self, stdout):
        out = parse_output_fields(stdout)
        assert out.dose == Fail("Unexpected end of file")
        assert out.total_cpu_time == Fail("Unexpected end of file")
        assert out.simulation_finished == Fail("Unexpected end of file")
