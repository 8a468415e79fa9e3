"""Configuration validation utilities."""

from typing import List
import os

import structlog

from ..contracts.errors import ValidationError
from .model import AppConfig

logger = structlog.get_logger()


def validate_config(config: AppConfig) -> None:
    """Validate configuration for common issues and conflicts.
    
    Args:
        config: Configuration to validate
        
    Raises:
        ValidationError: If configuration is invalid
    """
    errors: List[str] = []
    warnings: List[str] = []
    
    _validate_runner(config, errors)
    _validate_resource_constraints(config, warnings)
    
    for warning in warnings:
        logger.warning(warning)
    
    if errors:
        raise ValidationError(
            f"Configuration validation failed: {'; '.join(errors)}"
        )


def _validate_runner(config: AppConfig, errors: List[str]) -> None:
    """Check the runner can address its files."""
    runner = config.runner
    if not runner.application.strip():
        errors.append("runner.application must not be empty")
    if not runner.pegsfile.strip():
        errors.append("runner.pegsfile must not be empty")
    if "egsinp" not in runner.artifact_extensions:
        errors.append("runner.artifact_extensions must include 'egsinp'")


def _validate_resource_constraints(config: AppConfig, warnings: List[str]) -> None:
    """Check resource usage settings."""
    cores = os.cpu_count() or 1
    
    if config.run.nthreads is not None and config.run.nthreads > cores:
        warnings.append(
            f"nthreads={config.run.nthreads} exceeds the {cores} available cores"
        )
    
    if not config.run.cleanup:
        warnings.append(
            "cleanup disabled: per-run artifacts will accumulate in the application directory"
        )
