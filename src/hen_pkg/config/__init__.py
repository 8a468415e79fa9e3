"""Configuration system."""

from . import constants
from .model import AppConfig, RunnerConfig, RunConfig, SplitConfig, LoggingConfig
from .load import load_config, default_config, resolve_egs_home
from .validation import validate_config

__all__ = [
    "constants",
    "AppConfig",
    "RunnerConfig",
    "RunConfig",
    "SplitConfig",
    "LoggingConfig",
    "load_config",
    "default_config",
    "resolve_egs_home",
    "validate_config",
]
