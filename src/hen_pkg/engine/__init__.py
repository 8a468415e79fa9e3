"""Execution context for parallel runs."""

from .context import RunContext

__all__ = ["RunContext"]
