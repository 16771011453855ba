"""Parser for repository list files (one owner/repo per line, or CSV)."""

from pathlib import Path


def parse_repo_file(path: Path | str) -> list[str]:
    """Read repository names from a text or CSV file.

    Blank lines, ``#`` comments and a ``repo`` header line are skipped. Only
    the first comma-separated field of each line is used.

    Raises:
        OSError: If the file cannot be read.
    """
    repos: list[str] = []
    with open(path) as f:
        for raw_line in f:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            name = line.split(",", 1)[0].strip().strip('"')
            if not name or name.lower() == "repo":
                continue
            repos.append(name)
    return repos


def split_repo_list(value: str | None) -> list[str]:
    """Split a comma-separated --repos value, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
