"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across mkcbt. It centralizes parameters for logging, the scoped work
directory and the external encoder location. It also handles the loading of
user-specific configuration from an external YAML file, allowing for easy
customization without modifying the source code.
"""
from pathlib import Path
from typing import List

import yaml
from loguru import logger

PROGRAM_NAME = "mkcbt"

# --- User-Defined Configuration ---
# This block loads user-specific settings from a 'config.user.yaml' file located
# at the project root. This allows users to point mkcbt at a specific avifenc
# build or at a RAM disk for intermediate files without hardcoding paths.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = PROJECT_ROOT / "config.user.yaml"

# The directory containing the avifenc executable. If not provided or None,
# the application assumes the executable is available in the system's PATH.
ENCODER_DIR: Path | None = None

# The parent directory for the scoped work directory. If None, the platform
# temporary-files location is used.
WORK_PARENT_DIR: Path | None = None

# Fixed tuning flags passed to the encoder before the input and output paths.
ENCODER_EXTRA_ARGS: List[str] = []

if USER_CONFIG_PATH.is_file():
    try:
        with USER_CONFIG_PATH.open("r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f)
        if user_config:
            paths_config = user_config.get("paths") or {}
            encoder_dir_str = paths_config.get("encoder_dir")
            temp_dir_str = paths_config.get("temp_dir")

            if encoder_dir_str:
                ENCODER_DIR = Path(encoder_dir_str)
            if temp_dir_str:
                WORK_PARENT_DIR = Path(temp_dir_str)

            encoder_config = user_config.get("encoder") or {}
            ENCODER_EXTRA_ARGS = [str(arg) for arg in encoder_config.get("extra_args") or []]
    except Exception as e:
        logger.warning(f"Could not load or parse '{USER_CONFIG_PATH}': {e}")
else:
    logger.debug(f"User config '{USER_CONFIG_PATH}' not found. Relying on system PATH for executables.")


# --- Logging Configuration ---

# The format string for the Loguru logger. Logs always go to stderr because
# stdout may be carrying the archive itself.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{process} - <level>{message}</level>"
)

DEFAULT_LOG_LEVEL = "INFO"


# --- Output ---

# Output argument that selects the standard output stream instead of a file.
STDOUT_SENTINEL = "-"

# Entry indices start at 1 (1.avif, 2.avif, ...).
FIRST_SEQUENCE_INDEX = 1
