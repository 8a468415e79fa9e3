"""Scalar values carrying a relative standard deviation."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict
import math

import numpy as np


def _ratio(numerator: float, denominator: float) -> float:
    """Divide with IEEE semantics (0/0 -> nan, x/0 -> inf) instead of raising."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(numerator) / np.float64(denominator))


def _same(a: float, b: float) -> bool:
    return a == b or (math.isnan(a) and math.isnan(b))


@dataclass(frozen=True, eq=False)
class UncertainF64:
    """Float with relative standard deviation.

    Addition treats both operands as independent: values and variances add.
    Multiplication adds relative variances, which is the first-order
    approximation for a product of independent quantities.

    A zero value with zero variance has an undefined (nan) rstd. A zero
    value always has zero variance, so it adds nothing to a sum. Equality
    and hashing consider two nan rstds equal so exact values compose
    exactly.
    """

    value: float
    rstd: float = 0.0

    @classmethod
    def from_value(cls, value: float) -> "UncertainF64":
        return cls.from_value_var(value, 0.0)

    @classmethod
    def from_value_rstd(cls, value: float, rstd: float) -> "UncertainF64":
        return cls(float(value), float(rstd))

    @classmethod
    def from_value_std(cls, value: float, std: float) -> "UncertainF64":
        return cls.from_value_var(value, std * std)

    @classmethod
    def from_value_var(cls, value: float, var: float) -> "UncertainF64":
        rstd = _ratio(math.sqrt(var), value)
        return cls(float(value), rstd)

    @property
    def var(self) -> float:
        # a zero value carries no variance, whatever its rstd
        if self.value == 0.0:
            return 0.0
        return (self.value * self.rstd) ** 2

    @property
    def std(self) -> float:
        return math.sqrt(self.var)

    @property
    def rvar(self) -> float:
        return self.rstd ** 2

    def mask_nan(self) -> "UncertainF64":
        """Return a fully uncertain copy (rstd 1.0) if rstd is not finite."""
        if math.isfinite(self.rstd):
            return self
        return UncertainF64.from_value_rstd(self.value, 1.0)

    def __add__(self, other: "UncertainF64") -> "UncertainF64":
        if not isinstance(other, UncertainF64):
            return NotImplemented
        return UncertainF64.from_value_var(self.value + other.value, self.var + other.var)

    def __mul__(self, other: "UncertainF64") -> "UncertainF64":
        if not isinstance(other, UncertainF64):
            return NotImplemented
        rstd = math.sqrt(self.rvar + other.rvar)
        return UncertainF64.from_value_rstd(self.value * other.value, rstd)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UncertainF64):
            return NotImplemented
        return _same(self.value, other.value) and _same(self.rstd, other.rstd)

    def __hash__(self) -> int:
        rstd = None if math.isnan(self.rstd) else self.rstd
        return hash((self.value, rstd))

    def __str__(self) -> str:
        return f"{self.value} +- {self.rstd * 100.0}%"

    def to_dict(self) -> Dict[str, float]:
        return {"value": self.value, "rstd": self.rstd}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UncertainF64":
        return cls.from_value_rstd(data["value"], data["rstd"])
