"""Loader for KEY=VALUE secret files such as .devlake.env."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def load_env_file(path: Path | str) -> dict[str, str]:
    """Parse a KEY=VALUE file.

    Blank lines and ``#`` comments are ignored, surrounding quotes are
    stripped, and a missing file yields an empty mapping.

    Examples:
        A file containing ``GITHUB_PAT="ghp_abc"`` loads as
        ``{"GITHUB_PAT": "ghp_abc"}``.
    """
    env_path = Path(path)
    if not env_path.exists():
        logger.debug(f"Env file {env_path} not found")
        return {}

    values: dict[str, str] = {}
    with open(env_path) as f:
        for raw_line in f:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                continue
            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            if key:
                values[key] = value
    return values
