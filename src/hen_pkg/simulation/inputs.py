"""Single-run definitions and their split into parallel sub-runs."""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING, Union
import hashlib

import structlog

from ..contracts.errors import ParseError, ValidationError
from ..egsinp.tokenizer import Seed, TokenStream

if TYPE_CHECKING:
    from ..contracts.runner import SimulationRunner
    from .report import ParallelSimulationFinished

logger = structlog.get_logger()


def compute_checksum(content: str) -> str:
    """SHA3-256 hex digest of a configuration text."""
    return hashlib.sha3_256(content.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SingleSimulationInput:
    """One runnable configuration, identified by the checksum of its content."""

    application: str
    content: str
    pegsfile: str
    checksum: str
    filename: str

    @classmethod
    def build(
        cls,
        application: str,
        content: str,
        pegsfile: str,
        filename: str,
    ) -> "SingleSimulationInput":
        return cls(
            application=application,
            content=content,
            pegsfile=pegsfile,
            checksum=compute_checksum(content),
            filename=filename,
        )

    @classmethod
    def from_path(
        cls,
        application: str,
        path: Union[str, Path],
        pegsfile: str,
    ) -> "SingleSimulationInput":
        """Read a configuration file.

        Raises:
            ParseError: If the file cannot be read
        """
        path = Path(path)
        try:
            content = path.read_text()
        except OSError as exc:
            raise ParseError(f"Cannot read {path}: {exc}") from exc
        return cls.build(application, content, pegsfile, path.name)

    def split(self, ncases: Sequence[int], seeds: Sequence[Seed]) -> "ParallelSimulationInput":
        return ParallelSimulationInput(
            prototype=self,
            seeds=[tuple(seed) for seed in seeds],
            ncases=list(ncases),
        )

    def splitn(self, n: int) -> "ParallelSimulationInput":
        return self.split_fancy(None, None, n)

    def split_fancy(
        self,
        ncases: Optional[Sequence[int]],
        seeds: Optional[Sequence[Seed]],
        nthreads: int,
    ) -> "ParallelSimulationInput":
        """Split into sub-runs, generating whichever side is not given.

        The split count is ``len(seeds)``, else ``len(ncases)``, else
        ``nthreads``.

        Raises:
            ParseError: Unless the content has exactly one ``ncase`` and
                one ``initial seeds`` entry
        """
        stream = TokenStream.parse_string(self.content)
        stream.check_splittable()
        if seeds is not None:
            n = len(seeds)
        elif ncases is not None:
            n = len(ncases)
        else:
            n = nthreads
        if seeds is None:
            seeds = stream.generate_seeds(n)
        if ncases is None:
            ncases = stream.generate_ncases(n)
        logger.debug("Split prototype", checksum=self.checksum, n=n)
        return self.split(ncases, seeds)

    def __str__(self) -> str:
        return (
            f"{self.content}\n"
            f"Filename: {self.filename}\n"
            f"Application: {self.application}\n"
            f"Pegsfile: {self.pegsfile}\n"
            f"Checksum: {self.checksum}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "application": self.application,
            "content": self.content,
            "pegsfile": self.pegsfile,
            "checksum": self.checksum,
            "filename": self.filename,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SingleSimulationInput":
        return cls(
            application=data["application"],
            content=data["content"],
            pegsfile=data["pegsfile"],
            checksum=data["checksum"],
            filename=data["filename"],
        )


@dataclass
class ParallelSimulationInput:
    """A prototype plus one (seed, ncase) pair per sub-run."""

    prototype: SingleSimulationInput
    seeds: List[Seed] = field(default_factory=list)
    ncases: List[int] = field(default_factory=list)

    def validate(self) -> None:
        """Check that seeds and case counts pair up and seeds are unique.

        Raises:
            ValidationError: On length mismatch or duplicate seeds
        """
        if len(self.seeds) != len(self.ncases):
            raise ValidationError(
                f"Got {len(self.seeds)} seeds, but {len(self.ncases)} ncases"
            )
        if len(set(self.seeds)) != len(self.seeds):
            raise ValidationError(f"Duplicate seeds {self.seeds}")

    def children(self) -> List[SingleSimulationInput]:
        """Build one runnable input per (seed, ncase) pair, in order."""
        stream = TokenStream.parse_string(self.prototype.content)
        return [
            SingleSimulationInput.build(
                application=self.prototype.application,
                content=child.to_string(),
                pegsfile=self.prototype.pegsfile,
                filename=self.prototype.filename,
            )
            for child in stream.split(self.seeds, self.ncases)
        ]

    def chunks(self, size: int) -> List["ParallelSimulationInput"]:
        """Cut into consecutive fragments of at most ``size`` sub-runs."""
        if size <= 0:
            raise ValidationError("Chunk size must be positive")
        return [
            ParallelSimulationInput(
                prototype=self.prototype,
                seeds=self.seeds[i:i + size],
                ncases=self.ncases[i:i + size],
            )
            for i in range(0, len(self.seeds), size)
        ]

    def run(
        self,
        runner: "SimulationRunner",
        nthreads: Optional[int] = None,
        cleanup: bool = True,
    ) -> "ParallelSimulationFinished":
        """Validate, then execute all sub-runs concurrently."""
        from .runner import execute_parallel

        return execute_parallel(self, runner, nthreads=nthreads, cleanup=cleanup)

    @staticmethod
    def combine(inputs: Sequence["ParallelSimulationInput"]) -> "ParallelSimulationInput":
        """Concatenate sub-runs of inputs sharing one prototype checksum.

        Raises:
            ValidationError: If ``inputs`` is empty, checksums differ or the
                merged seeds collide
        """
        if not inputs:
            raise ValidationError("Cannot combine empty collection of simulations.")
        checksums = [inp.prototype.checksum for inp in inputs]
        if len(set(checksums)) != 1:
            raise ValidationError(
                f"Cannot combine simulations with different checksums: {checksums}"
            )
        seeds: List[Seed] = []
        ncases: List[int] = []
        for inp in inputs:
            seeds.extend(inp.seeds)
            ncases.extend(inp.ncases)
        combined = ParallelSimulationInput(
            prototype=inputs[0].prototype,
            seeds=seeds,
            ncases=ncases,
        )
        combined.validate()
        return combined

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prototype": self.prototype.to_dict(),
            "seeds": [list(seed) for seed in self.seeds],
            "ncases": list(self.ncases),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParallelSimulationInput":
        return cls(
            prototype=SingleSimulationInput.from_dict(data["prototype"]),
            seeds=[(int(s1), int(s2)) for s1, s2 in data["seeds"]],
            ncases=[int(n) for n in data["ncases"]],
        )
