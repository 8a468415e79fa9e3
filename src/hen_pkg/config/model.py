"""Configuration data models."""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Union
from pathlib import Path
from pydantic import BaseModel, Field, field_validator

from .constants import (
    ARTIFACT_EXTENSIONS,
    DEFAULT_APPLICATION,
    DEFAULT_PEGSFILE,
    LOG_LEVELS,
)


class RunnerConfig(BaseModel):
    """External simulator settings."""
    
    egs_home: Optional[Path] = Field(None, description="Application home directory; falls back to $EGS_HOME")
    application: str = DEFAULT_APPLICATION
    pegsfile: str = DEFAULT_PEGSFILE
    artifact_extensions: List[str] = Field(default_factory=lambda: list(ARTIFACT_EXTENSIONS))


class RunConfig(BaseModel):
    """Parallel execution configuration."""
    
    nthreads: Optional[int] = Field(None, description="Worker pool size; defaults to the host core count")
    cleanup: bool = Field(True, description="Remove per-run artifacts after each sub-run")
        
    @field_validator("nthreads")
    @classmethod
    def validate_nthreads(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("nthreads must be positive")
        return v


class SplitConfig(BaseModel):
    """Settings for splitting a job into cluster fragments."""

    nfiles: int = Field(1, gt=0, description="Number of fragment files")
    nthreads: int = Field(1, gt=0, description="Sub-runs per fragment")


class LoggingConfig(BaseModel):
    """Structured logging settings."""

    level: str = "INFO"
    json_logs: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"level must be one of {LOG_LEVELS}")
        return level


class AppConfig(BaseModel):
    """Complete application configuration."""
    
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    split: SplitConfig = Field(default_factory=SplitConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    
    @classmethod
    def from_toml_file(cls, path: Union[Path, str]) -> "AppConfig":
        """Load configuration from TOML file."""
        return cls.model_validate(read_toml(path))


def read_toml(path: Union[Path, str]) -> Dict[str, Any]:
    """Parse a TOML file into plain section dictionaries."""
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib

    with open(path, "rb") as f:
        return tomllib.load(f)
