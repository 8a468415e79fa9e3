"""Domain value types shared by parsing, splitting and aggregation."""

from .uncertain import UncertainF64
from .omittable import Omittable, Omitted, Fail, Available, map2

__all__ = [
    "UncertainF64",
    "Omittable",
    "Omitted",
    "Fail",
    "Available",
    "map2",
]
