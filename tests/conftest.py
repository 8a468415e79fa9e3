"""Pytest configuration and fixtures."""

import sys
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Tuple

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

import pytest
import structlog

from hen_pkg.config import AppConfig
from hen_pkg.contracts.runner import RunOutput
from hen_pkg.egsinp.tokenizer import TokenStream

DATA_DIR = Path(__file__).resolve().parent / "data"

LOG_TEMPLATE = """\
================================================================================
{application}
================================================================================
configuration......................linux64
user code..........................{application}
pegs file..........................{pegsfile} in HEN_HOUSE
================================================================================

Running {ncase} histories

Finished simulation

Total cpu time for this run:            {cpu_time} (sec.) 0.0100(hours)
Histories per hour:                 9.01335e+07

==============================================================================================
Geometry                        Cavity dose
----------------------------------------------------------------------------------------------
{dose_lines}

==============================================================================================

finishSimulation({application}) 0
"""


def make_log(
    doses: List[Tuple[str, float, float]],
    cpu_time: float = 10.0,
    application: str = "egs_chamber",
    pegsfile: str = "521icru",
    ncase: int = 1000,
) -> str:
    """Render a simulator stdout with the given ``(region, dose, rstd %)`` rows."""
    dose_lines = "\n".join(
        f"{name:<26}{value:.4e} +/- {pct:.3f}%" for name, value, pct in doses
    )
    return LOG_TEMPLATE.format(
        application=application,
        pegsfile=pegsfile,
        ncase=ncase,
        cpu_time=cpu_time,
        dose_lines=dose_lines,
    )


class FakeRunner:
    """In-memory runner producing a log whose dose depends on the seed."""

    def __init__(self, regions: Tuple[str, ...] = ("Block_",), exit_status: int = 0,
                 stdout: Optional[str] = None):
        self.regions = regions
        self.exit_status = exit_status
        self.stdout = stdout
        self.runs: List[str] = []
        self.cleaned: List[str] = []
        self._lock = threading.Lock()

    def run(self, application: str, config_text: str, pegsfile: str) -> RunOutput:
        with self._lock:
            self.runs.append(config_text)
        if self.stdout is not None:
            return RunOutput(stdout=self.stdout, stderr="", exit_status=self.exit_status)
        stream = TokenStream.parse_string(config_text)
        _, index = stream.get_value("initial seeds").split()
        doses = [(name, 1e-13 * int(index), 2.0) for name in self.regions]
        stdout = make_log(doses, ncase=stream.get_ncase(), application=application, pegsfile=pegsfile)
        return RunOutput(stdout=stdout, stderr="", exit_status=self.exit_status)

    def cleanup(self, application: str, config_text: str) -> None:
        with self._lock:
            self.cleaned.append(config_text)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI callbacks."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_dir():
    """Temporary directory for test artifacts."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def sample_egsinp_path(temp_dir: Path) -> Path:
    """Copy of the block phantom configuration (ncase = 1000)."""
    path = temp_dir / "block.egsinp"
    path.write_text((DATA_DIR / "block.egsinp").read_text())
    return path


@pytest.fixture
def sample_egsinp_text() -> str:
    return (DATA_DIR / "block.egsinp").read_text()


@pytest.fixture
def finished_log() -> str:
    return (DATA_DIR / "finished.log").read_text()


@pytest.fixture
def truncated_log() -> str:
    return (DATA_DIR / "truncated.log").read_text()


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def sample_config(temp_dir: Path) -> AppConfig:
    """Configuration pointing the runner at a temporary home directory."""
    return AppConfig(runner={"egs_home": str(temp_dir)}, run={"nthreads": 2})


@pytest.fixture
def sample_toml_config(temp_dir: Path) -> Path:
    """Sample TOML configuration file."""
    config_content = f"""
[runner]
egs_home = "{temp_dir.as_posix()}"
application = "egs_cbct"
pegsfile = "700icru"

[run]
nthreads = 2
cleanup = false

[split]
nfiles = 3
nthreads = 4

[logging]
level = "debug"
"""
    config_path = temp_dir / "hen.toml"
    config_path.write_text(config_content)
    return config_path
