"""Tests for simulation inputs and their split into sub-runs."""

import pytest

from hen_pkg.contracts.errors import ParseError, ValidationError
from hen_pkg.egsinp.tokenizer import TokenStream
from hen_pkg.simulation.inputs import (
    ParallelSimulationInput,
    SingleSimulationInput,
    compute_checksum,
)


@pytest.fixture
def prototype(sample_egsinp_path):
    return SingleSimulationInput.from_path("egs_chamber", sample_egsinp_path, "521icru")


class TestSingleSimulationInput:

    def test_from_path(self, prototype, sample_egsinp_text):
        assert prototype.filename == "block.egsinp"
        assert prototype.content == sample_egsinp_text
        assert prototype.checksum == compute_checksum(sample_egsinp_text)
        assert len(prototype.checksum) == 64

    def test_missing_file(self, temp_dir):
        with pytest.raises(ParseError, match="Cannot read"):
            SingleSimulationInput.from_path("egs_chamber", temp_dir / "nope.egsinp", "521icru")

    def test_checksum_depends_on_content_only(self):
        a = SingleSimulationInput.build("egs_chamber", "ncase = 1", "521icru", "a.egsinp")
        b = SingleSimulationInput.build("egs_cbct", "ncase = 1", "700icru", "b.egsinp")
        assert a.checksum == b.checksum

    def test_splitn(self, prototype):
        sim = prototype.splitn(6)
        assert sim.seeds == [(42, i) for i in range(1, 7)]
        assert sim.ncases == [166] * 6
        assert sim.prototype is prototype

    def test_split_fancy_uses_seed_count(self, prototype):
        sim = prototype.split_fancy(None, [(1, 1), (1, 2)], nthreads=8)
        assert sim.ncases == [500, 500]

    def test_split_fancy_uses_ncase_count(self, prototype):
        sim = prototype.split_fancy([10, 20, 30], None, nthreads=8)
        assert sim.seeds == [(42, 1), (42, 2), (42, 3)]
        assert sim.ncases == [10, 20, 30]

    def test_split_fancy_falls_back_to_threads(self, prototype):
        sim = prototype.split_fancy(None, None, nthreads=4)
        assert len(sim.seeds) == 4
        assert sim.ncases == [250] * 4

    @pytest.mark.parametrize("content", [
        "ncase = 1000",
        "ncase = 1000\ninitial seeds = 1 2\ninitial seeds = 3 4",
        "initial seeds = 1 2",
        "ncase = 1000\nncase = 10\ninitial seeds = 1 2",
    ])
    def test_split_requires_single_ncase_and_seeds(self, content):
        single = SingleSimulationInput.build("egs_chamber", content, "521icru", "x.egsinp")
        with pytest.raises(ParseError):
            single.splitn(3)
        with pytest.raises(ParseError):
            single.split_fancy([10, 20], None, nthreads=2)

    def test_str_lists_metadata(self, prototype):
        text = str(prototype)
        assert "Filename: block.egsinp" in text
        assert "Application: egs_chamber" in text
        assert f"Checksum: {prototype.checksum}" in text

    def test_dict_roundtrip(self, prototype):
        assert SingleSimulationInput.from_dict(prototype.to_dict()) == prototype


class TestParallelSimulationInput:

    def test_validate_length_mismatch(self, prototype):
        sim = prototype.split([1, 2], [(1, 1)])
        with pytest.raises(ValidationError, match="Got 1 seeds, but 2 ncases"):
            sim.validate()

    def test_validate_duplicate_seeds(self, prototype):
        sim = prototype.split([1, 2], [(1, 1), (1, 1)])
        with pytest.raises(ValidationError, match="Duplicate seeds"):
            sim.validate()

    def test_children(self, prototype):
        sim = prototype.split([100, 200], [(5, 6), (7, 8)])
        children = sim.children()
        assert [c.filename for c in children] == ["block.egsinp"] * 2
        stream = TokenStream.parse_string(children[1].content)
        assert stream.get_ncase() == 200
        assert stream.get_value("initial seeds") == "7 8"
        assert children[0].checksum == compute_checksum(children[0].content)
        assert children[0].checksum != children[1].checksum

    def test_chunks(self, prototype):
        sim = prototype.splitn(5)
        chunks = sim.chunks(2)
        assert [len(c.seeds) for c in chunks] == [2, 2, 1]
        assert ParallelSimulationInput.combine(chunks) == sim

    def test_combine_empty(self):
        with pytest.raises(ValidationError, match="empty collection"):
            ParallelSimulationInput.combine([])

    def test_combine_different_prototypes(self, prototype):
        other = SingleSimulationInput.build("egs_chamber", "ncase = 10\ninitial seeds = 1 2", "521icru", "x.egsinp")
        with pytest.raises(ValidationError, match="different checksums"):
            ParallelSimulationInput.combine([prototype.splitn(2), other.splitn(2)])

    def test_combine_colliding_seeds(self, prototype):
        with pytest.raises(ValidationError, match="Duplicate seeds"):
            ParallelSimulationInput.combine([prototype.splitn(2), prototype.splitn(2)])

    def test_dict_roundtrip(self, prototype):
        sim = prototype.splitn(3)
        restored = ParallelSimulationInput.from_dict(sim.to_dict())
        assert restored == sim
        assert isinstance(restored.seeds[0], tuple)
