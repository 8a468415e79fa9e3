"""Tokenizer for the line-oriented ``.egsinp`` configuration language.

A configuration is a sequence of logical lines, each one of::

    key = value
    :start block name:
    :stop block name:

``#`` starts a comment, blank lines are ignored and a trailing backslash
continues a logical line on the next physical line. The token stream
round-trips through :meth:`TokenStream.to_string` up to whitespace and
comments.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union
import re

import structlog

from ..config.constants import DEFAULT_SEED_BASE, INDENT_UNIT
from ..contracts.errors import ParseError

logger = structlog.get_logger()

Seed = Tuple[int, int]

_KEY_VALUE_RE = re.compile(r"^(.*)=(.*)$")
_START_RE = re.compile(r"^:start (.*):$")
_STOP_RE = re.compile(r"^:stop (.*):$")

NCASE_KEY = "ncase"
SEEDS_KEY = "initial seeds"


@dataclass(frozen=True)
class Token:
    """One logical configuration line."""

    @staticmethod
    def parse(line: str) -> "Token":
        """Classify a cleaned logical line.

        Raises:
            ParseError: If the line is neither key/value, start nor stop
        """
        match = _KEY_VALUE_RE.match(line)
        if match:
            return KeyValue(match.group(1).strip(), match.group(2).strip())
        match = _START_RE.match(line)
        if match:
            return Start(match.group(1).strip())
        match = _STOP_RE.match(line)
        if match:
            return Stop(match.group(1).strip())
        raise ParseError(f"Cannot parse {line}")

    def to_string_indent(self, indent: int) -> Tuple[str, int]:
        """Render at ``indent`` and return the indent for the next token."""
        return INDENT_UNIT * indent + str(self), indent


@dataclass(frozen=True)
class Start(Token):
    name: str

    def __str__(self) -> str:
        return f":start {self.name}:"

    def to_string_indent(self, indent: int) -> Tuple[str, int]:
        return INDENT_UNIT * indent + str(self), indent + 1


@dataclass(frozen=True)
class Stop(Token):
    name: str

    def __str__(self) -> str:
        return f":stop {self.name}:"

    def to_string_indent(self, indent: int) -> Tuple[str, int]:
        indent = max(indent - 1, 0)
        return INDENT_UNIT * indent + str(self), indent


@dataclass(frozen=True)
class KeyValue(Token):
    key: str
    value: str

    def __str__(self) -> str:
        return f"{self.key} = {self.value}"


def _clean(line: str) -> str:
    return line.split("#", 1)[0].strip()


def iter_logical_lines(lines: Iterable[str]) -> Iterator[str]:
    """Yield cleaned logical lines, joining backslash continuations.

    Raises:
        ParseError: If input ends in the middle of a continued line
    """
    pending: Optional[str] = None
    for raw in lines:
        line = _clean(raw)
        if not line:
            continue
        if pending is not None:
            line = pending + line
            pending = None
        if line.endswith("\\"):
            pending = line[:-1]
            continue
        yield line
    if pending is not None:
        raise ParseError("End of file")


class TokenStream:
    """Immutable ordered sequence of configuration tokens."""

    def __init__(self, tokens: Iterable[Token] = ()):
        self._tokens: Tuple[Token, ...] = tuple(tokens)

    @property
    def tokens(self) -> Tuple[Token, ...]:
        return self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self._tokens)

    def __getitem__(self, index: int) -> Token:
        return self._tokens[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenStream):
            return NotImplemented
        return self._tokens == other._tokens

    def __repr__(self) -> str:
        return f"TokenStream({list(self._tokens)!r})"

    @classmethod
    def parse_lines(cls, lines: Iterable[str]) -> "TokenStream":
        return cls(Token.parse(line) for line in iter_logical_lines(lines))

    @classmethod
    def parse_string(cls, text: str) -> "TokenStream":
        return cls.parse_lines(text.splitlines())

    def to_string(self) -> str:
        rendered: List[str] = []
        indent = 0
        for token in self._tokens:
            line, indent = token.to_string_indent(indent)
            rendered.append(line)
        return "\n".join(rendered)

    def find_index(self, key: str) -> List[int]:
        return [
            i for i, token in enumerate(self._tokens)
            if isinstance(token, KeyValue) and token.key == key
        ]

    def find_index_single(self, key: str) -> Optional[int]:
        """Index of the unique ``key`` entry, None when absent or ambiguous."""
        indices = self.find_index(key)
        if len(indices) == 1:
            return indices[0]
        return None

    def _require_index(self, key: str) -> int:
        indices = self.find_index(key)
        if not indices:
            raise ParseError(f"Cannot find {key}")
        if len(indices) > 1:
            raise ParseError(
                f"Ambiguous key {key}: found {len(indices)} entries",
                details={"key": key, "indices": indices},
            )
        return indices[0]

    def get_value(self, key: str) -> str:
        token = self._tokens[self._require_index(key)]
        if not isinstance(token, KeyValue):
            raise ParseError(f"Entry {key} has no value")
        return token.value

    def check_splittable(self) -> None:
        """Ensure exactly one ``ncase`` and one ``initial seeds`` entry exist.

        Raises:
            ParseError: If either key is missing or ambiguous
        """
        self._require_index(NCASE_KEY)
        self._require_index(SEEDS_KEY)

    def get_ncase(self) -> int:
        raw = self.get_value(NCASE_KEY)
        try:
            return int(raw)
        except ValueError as exc:
            raise ParseError(f"Cannot parse ncase from {raw!r}") from exc

    def generate_seeds(self, n: int) -> List[Seed]:
        return [(DEFAULT_SEED_BASE, i) for i in range(1, n + 1)]

    def generate_ncases(self, n: int) -> List[int]:
        """Split the total case count evenly; the remainder is dropped."""
        if n <= 0:
            raise ParseError(f"Cannot split into {n} parts")
        ncase = self.get_ncase()
        share = ncase // n
        if share <= 0:
            raise ParseError(f"Cannot split ncase = {ncase} into {n} parts")
        if ncase % n:
            logger.debug("Dropping remainder cases", ncase=ncase, parts=n, dropped=ncase % n)
        return [share] * n

    def with_seed_and_ncase(self, seed: Seed, ncase: int) -> "TokenStream":
        index_ncase = self._require_index(NCASE_KEY)
        index_seed = self._require_index(SEEDS_KEY)
        tokens = list(self._tokens)
        tokens[index_ncase] = KeyValue(NCASE_KEY, str(ncase))
        s1, s2 = seed
        tokens[index_seed] = KeyValue(SEEDS_KEY, f"{s1} {s2}")
        return TokenStream(tokens)

    def split(self, seeds: Sequence[Seed], ncases: Sequence[int]) -> List["TokenStream"]:
        return [self.with_seed_and_ncase(seed, ncase) for seed, ncase in zip(seeds, ncases)]


def format_text(text: str) -> str:
    """Return ``text`` in canonical indentation without comments."""
    return TokenStream.parse_string(text).to_string()


def format_file(path: Union[str, Path]) -> str:
    """Rewrite a configuration file in canonical form and return the new text."""
    path = Path(path)
    with open(path, "r") as fh:
        formatted = TokenStream.parse_lines(fh).to_string()
    path.write_text(formatted)
    return formatted
