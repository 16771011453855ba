"""Local deployment state (.devlake-azure.json / .devlake-local.json)."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import DeploymentState, StateConnection, StateEndpoints, StateProject
from .paths import local_state_file, state_file_candidates

logger = logging.getLogger(__name__)


def utc_timestamp(now: datetime | None = None) -> str:
    """RFC3339 timestamp in UTC, e.g. 2026-01-02T03:04:05Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def friendly_time(value: str) -> str:
    """Render an RFC3339 timestamp as "YYYY-MM-DD HH:MM UTC", or return it unchanged."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def merge_connections(
    existing: list[StateConnection], updated: list[StateConnection]
) -> list[StateConnection]:
    """Replace recorded connections of every plugin present in ``updated``.

    Connections of plugins that were not part of this run are kept, in their
    original order, ahead of the new entries.
    """
    plugins = {c.plugin for c in updated}
    kept = [c for c in existing if c.plugin not in plugins]
    return kept + list(updated)


class StateStore:
    """Loads and persists the deployment state file.

    There is no locking: a single operator running a single process is assumed.
    """

    def __init__(self, directory: Path | str | None = None):
        """
        Initialize the state store.

        Args:
            directory: Directory holding the state files. Defaults to the working directory.
        """
        self.directory = Path(directory) if directory is not None else Path.cwd()

    def load(self, path: Path | str) -> DeploymentState | None:
        """Load state from a JSON file.

        Returns:
            The parsed state, or None if the file does not exist.

        Raises:
            ValueError: If the file is not valid JSON or not a state document.
        """
        state_path = Path(path)
        if not state_path.exists():
            return None

        with open(state_path) as f:
            data = json.load(f)
        return DeploymentState.model_validate(data)

    def find(self) -> tuple[Path, DeploymentState] | None:
        """Return the first readable well-known state file."""
        for candidate in state_file_candidates(self.directory):
            try:
                state = self.load(candidate)
            except ValueError as e:
                logger.warning(f"Ignoring unreadable state file {candidate}: {e}")
                continue
            if state is not None:
                return candidate, state
        return None

    def find_or_create(
        self, backend_url: str, grafana_url: str | None = None
    ) -> tuple[Path, DeploymentState]:
        """Return the existing state, or a fresh local state (not yet written)."""
        found = self.find()
        if found is not None:
            return found

        state = DeploymentState(
            deployed_at=utc_timestamp(),
            method="local",
            endpoints=StateEndpoints(backend=backend_url, grafana=grafana_url or None),
        )
        return local_state_file(self.directory), state

    def _load_raw(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = json.load(f)
        except ValueError as e:
            logger.warning(f"Overwriting unreadable state file {path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, path: Path | str, state: DeploymentState) -> None:
        """Write state, overlaying it on whatever JSON object is already on disk.

        Keys this tool does not model (e.g. cloud deployment metadata) survive.
        """
        state_path = Path(path)
        merged = self._load_raw(state_path)
        merged.update(state.to_api())

        with open(state_path, "w") as f:
            json.dump(merged, f, indent=2)
            f.write("\n")

    def update_connections(
        self,
        path: Path | str,
        state: DeploymentState,
        connections: list[StateConnection],
    ) -> None:
        """Record connections and stamp connectionsConfiguredAt."""
        state.connections = list(connections)
        state.connections_configured_at = utc_timestamp()
        self.save(path, state)

    def update_project(
        self, path: Path | str, state: DeploymentState, project: StateProject
    ) -> None:
        """Record the project/blueprint and stamp scopesConfiguredAt."""
        state.project = project
        state.scopes_configured_at = utc_timestamp()
        self.save(path, state)
