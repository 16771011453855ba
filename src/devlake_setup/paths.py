"""Path utilities for devlake-setup configuration and state files."""

import os
from pathlib import Path

from . import settings


def get_config_dir() -> Path:
    """Get config directory from environment or default.

    Checks DEVLAKE_SETUP_CONFIG_DIR environment variable first, falls back to
    ~/.devlake-setup

    Returns:
        Path to configuration directory.
    """
    if config_dir := os.environ.get("DEVLAKE_SETUP_CONFIG_DIR"):
        return Path(config_dir)
    return Path.home() / ".devlake-setup"


def state_file_candidates(directory: Path | str | None = None) -> list[Path]:
    """Return the well-known state file paths, in lookup order."""
    base = Path(directory) if directory is not None else Path.cwd()
    return [base / name for name in settings.STATE_FILE_NAMES]


def local_state_file(directory: Path | str | None = None) -> Path:
    """Path of the state file written when no deployment state exists yet."""
    base = Path(directory) if directory is not None else Path.cwd()
    return base / settings.LOCAL_STATE_FILE
