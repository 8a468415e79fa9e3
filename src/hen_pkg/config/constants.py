"""Default values shared across the package."""

# Runner defaults
DEFAULT_APPLICATION = "egs_chamber"
DEFAULT_PEGSFILE = "521icru"
ARTIFACT_EXTENSIONS = ("egsinp", "egsdat", "ptracks")
EGS_HOME_ENV = "EGS_HOME"

# File extensions
INPUT_EXTENSION = "egsinp"
PARALLEL_INPUT_EXTENSION = "heninp"
REPORT_EXTENSION = "henout"

# Splitting
DEFAULT_SEED_BASE = 42

# Rendering
INDENT_UNIT = "    "
SECTION_WIDTH = 50

# Logging
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
