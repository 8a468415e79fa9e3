"""Configuration loading utilities."""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union, get_origin

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.fields import FieldInfo

from ..contracts.errors import ConfigError
from .constants import EGS_HOME_ENV
from .model import AppConfig, read_toml

ENV_PREFIX = "HEN_"
CONFIG_ENV = "HEN_CONFIG"


def default_config() -> AppConfig:
    """Create default configuration."""
    return AppConfig()


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    """Load configuration from file, then apply environment overrides.

    Args:
        path: Path to configuration file. If None, looks for:
              - HEN_CONFIG environment variable
              - hen.toml in current directory
              - ~/.hen/config.toml
              and uses the defaults when none exists.

    Every setting can be overridden as ``HEN_<SECTION>_<KEY>``, for example
    ``HEN_RUN_NTHREADS=4`` or ``HEN_RUNNER_EGS_HOME=/opt/egs_home``. Values
    are coerced by the field they target; list settings are comma separated.

    Raises:
        ConfigError: If the file is missing or unreadable, or the merged
            settings do not validate
    """
    if path is None:
        path = _find_config_file()

    data: Dict[str, Any] = {}
    source = "defaults"
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        try:
            data = read_toml(path)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}")
        source = str(path)

    overrides = env_overrides()
    for section, fields in overrides.items():
        current = data.setdefault(section, {})
        if not isinstance(current, dict):
            raise ConfigError(f"Failed to load config from {source}: [{section}] is not a table")
        current.update(fields)

    try:
        return AppConfig.model_validate(data)
    except PydanticValidationError as e:
        origin = f"{source} with environment overrides" if overrides else source
        raise ConfigError(
            f"Failed to load config from {origin}: {_describe(e)}",
            details={"errors": e.errors(include_url=False)},
        )


def env_overrides() -> Dict[str, Dict[str, Any]]:
    """Collect ``HEN_<SECTION>_<KEY>`` variables naming a known setting."""
    overrides: Dict[str, Dict[str, Any]] = {}
    for section, section_field in AppConfig.model_fields.items():
        model = section_field.annotation
        if not (isinstance(model, type) and issubclass(model, BaseModel)):
            continue
        for name, info in model.model_fields.items():
            raw = os.environ.get(f"{ENV_PREFIX}{section}_{name}".upper())
            if raw is not None:
                overrides.setdefault(section, {})[name] = _env_value(info, raw)
    return overrides


def resolve_egs_home(config: AppConfig) -> Path:
    """Return the application home directory for the runner.

    The explicit ``runner.egs_home`` setting wins over ``$EGS_HOME``.

    Raises:
        ConfigError: If neither is set
    """
    if config.runner.egs_home is not None:
        return Path(config.runner.egs_home)
    env_home = os.environ.get(EGS_HOME_ENV)
    if env_home:
        return Path(env_home)
    raise ConfigError(
        f"No application home directory: set runner.egs_home or ${EGS_HOME_ENV}"
    )


def _find_config_file() -> Optional[Path]:
    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        return Path(env_path)
    for candidate in (Path("hen.toml"), Path.home() / ".hen" / "config.toml"):
        if candidate.exists():
            return candidate
    return None


def _env_value(info: FieldInfo, raw: str) -> Any:
    # strings are left to pydantic's own coercion, lists need splitting first
    if get_origin(info.annotation) in (list, List):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def _describe(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in error.errors()
    )
