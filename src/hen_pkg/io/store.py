"""JSON persistence for inputs and reports.

Records are wrapped together with tool metadata::

    {"hen_info": {"version": ..., "commit": ..., "timestamp": ...},
     "content": <record>}

``load`` unwraps the envelope transparently and also accepts bare records.
"""

from __future__ import annotations

import datetime as dt
import json
import subprocess
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Type, TypeVar, Union

import structlog

from ..contracts.errors import StoreError

logger = structlog.get_logger()

INFO_KEY = "hen_info"
CONTENT_KEY = "content"


class Record(Protocol):
    def to_dict(self) -> Dict[str, Any]: ...

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Any: ...


R = TypeVar("R")


def _utc_timestamp_iso() -> str:
    stamp = dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat()
    return stamp.replace("+00:00", "Z")


def _safe_git_commit(repo_root: Optional[Path] = None) -> Optional[str]:
    root = repo_root
    if root is None:
        root = Path(__file__).resolve().parents[1]
    try:
        commit = subprocess.check_output(
            ["git", "rev-parse", "HEAD"],
            cwd=root,
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return None
    return commit or None


@dataclass(frozen=True)
class HenInfo:
    """Tool metadata stored next to every record."""

    version: str
    commit: Optional[str]
    timestamp: str

    @classmethod
    def collect(cls) -> "HenInfo":
        from .. import __version__

        return cls(
            version=__version__,
            commit=_safe_git_commit(),
            timestamp=_utc_timestamp_iso(),
        )

    def __str__(self) -> str:
        return f"Version: {self.version}\nCommit: {self.commit or 'unknown'}\nTimestamp: {self.timestamp}"


def save(path: Union[str, Path], record: Record) -> None:
    """Write ``record`` as wrapped JSON, creating parent directories.

    Raises:
        StoreError: If the file cannot be written
    """
    path = Path(path)
    payload = {
        INFO_KEY: asdict(HenInfo.collect()),
        CONTENT_KEY: record.to_dict(),
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as fh:
            json.dump(payload, fh, indent=2)
    except OSError as exc:
        raise StoreError(f"Cannot write {path}: {exc}") from exc
    logger.debug("Saved record", path=str(path), kind=type(record).__name__)


def load(path: Union[str, Path], cls: Type[R]) -> R:
    """Read a record of type ``cls`` from ``path``.

    Raises:
        StoreError: If the file is missing, not JSON or not a valid record
    """
    path = Path(path)
    try:
        with open(path, "r") as fh:
            data = json.load(fh)
    except OSError as exc:
        raise StoreError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise StoreError(f"Invalid JSON in {path}: {exc}") from exc

    if isinstance(data, dict) and CONTENT_KEY in data and INFO_KEY in data:
        data = data[CONTENT_KEY]
    try:
        return cls.from_dict(data)  # type: ignore[attr-defined]
    except (KeyError, TypeError, ValueError) as exc:
        raise StoreError(
            f"Cannot decode {cls.__name__} from {path}: {exc}",
            details={"path": str(path)},
        ) from exc
