"""Three-state wrapper for report fields that may be absent or broken.

``Omitted`` marks a field that was deliberately not kept, ``Fail`` a field
whose computation failed, and ``Available`` a field with a value. The three
states compose through :func:`map2`, where a failure always wins over an
omission so that a single broken sub-run stays visible in an aggregate.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from ..contracts.errors import HenError

T = TypeVar("T")
S = TypeVar("S")
U = TypeVar("U")


class Omittable(Generic[T]):
    """Base class of the ``Omitted`` / ``Fail`` / ``Available`` variants."""

    def is_available(self) -> bool:
        return isinstance(self, Available)

    def map(self, f: Callable[[T], U]) -> "Omittable[U]":
        if isinstance(self, Available):
            return Available(f(self.value))
        return self  # type: ignore[return-value]

    def unwrap(self) -> T:
        """Return the value or raise ``HenError`` with the failure message."""
        if isinstance(self, Available):
            return self.value
        if isinstance(self, Fail):
            raise HenError(self.message)
        raise HenError("Omitted")

    @staticmethod
    def from_result(compute: Callable[[], T]) -> "Omittable[T]":
        """Run ``compute`` and capture a ``HenError`` or ``ValueError`` as ``Fail``."""
        try:
            return Available(compute())
        except (HenError, ValueError) as exc:
            return Fail(str(exc))

    def to_dict(self, encode: Optional[Callable[[Any], Any]] = None) -> Any:
        """Externally tagged form; ``Omitted`` is the bare string ``"Omitted"``."""
        if isinstance(self, Available):
            return {"Available": encode(self.value) if encode else self.value}
        if isinstance(self, Fail):
            return {"Fail": self.message}
        return "Omitted"

    @staticmethod
    def from_dict(data: Any, decode: Optional[Callable[[Any], Any]] = None) -> "Omittable[Any]":
        if data == "Omitted":
            return Omitted()
        if not isinstance(data, dict) or len(data) != 1:
            raise HenError(f"Cannot decode Omittable from {data!r}")
        tag, payload = next(iter(data.items()))
        if tag == "Omitted":
            return Omitted()
        if tag == "Fail":
            return Fail(str(payload))
        if tag == "Available":
            return Available(decode(payload) if decode else payload)
        raise HenError(f"Unknown Omittable tag {tag!r}")


@dataclass(frozen=True)
class Omitted(Omittable[Any]):
    """Field deliberately not kept."""

    def __str__(self) -> str:
        return ""


@dataclass(frozen=True)
class Fail(Omittable[Any]):
    """Field whose computation failed."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class Available(Omittable[T]):
    """Field holding a value."""

    value: T

    def __str__(self) -> str:
        return str(self.value)


def map2(f: Callable[[S, T], U], s: Omittable[S], t: Omittable[T]) -> Omittable[U]:
    """Combine two fields with ``f`` when both are available.

    Precedence: a failure of ``s``, then a failure of ``t``, then omission.
    """
    if isinstance(s, Fail):
        return s
    if isinstance(t, Fail):
        return t
    if isinstance(s, Available) and isinstance(t, Available):
        return Available(f(s.value, t.value))
    return Omitted()
