"""Error definitions for the hen package."""

from __future__ import annotations
from typing import Dict, Optional


class HenError(Exception):
    """Base exception for all hen package errors."""
    
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(HenError):
    """Configuration-related errors."""
    pass


class ValidationError(ConfigError):
    """Input validation errors (seeds, case counts, combine preconditions)."""
    pass


class ParseError(HenError):
    """Malformed configuration text or ambiguous key lookup."""
    pass


class OutputParseError(ParseError):
    """Simulator stdout could not be parsed."""
    pass


class RunnerError(HenError):
    """External runner could not be set up."""
    pass


class StoreError(HenError):
    """Record persistence errors."""
    pass
