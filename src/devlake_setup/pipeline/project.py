"""
Project and blueprint finalization
Creates or reuses the project, then replaces its blueprint schedule and connections
"""

import logging
import re
from datetime import date, datetime, timezone

from rich.console import Console

from .. import settings
from ..client import DevLakeClient
from ..exceptions import (
    BlueprintConfigureFailedError,
    DevLakeAPIError,
    ProjectUnavailableError,
    ValidationError,
)
from ..models import BlueprintConnection, BlueprintPatch, Project, ProjectMetric

logger = logging.getLogger(__name__)
console = Console()

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _months_before(today: date, months: int) -> date:
    """Same day ``months`` earlier, clamped to the end of shorter months."""
    month_index = today.year * 12 + today.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    for day in (today.day, 30, 29, 28):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return date(year, month, 28)


def default_time_after(now: datetime | None = None) -> str:
    """Midnight UTC, six months before now.

    Examples:
        >>> default_time_after(datetime(2026, 8, 31, tzinfo=timezone.utc))
        '2026-02-28T00:00:00Z'
    """
    now = now or datetime.now(timezone.utc)
    since = _months_before(now.astimezone(timezone.utc).date(), settings.DEFAULT_LOOKBACK_MONTHS)
    return since.strftime("%Y-%m-%dT00:00:00Z")


def normalize_time_after(value: str | None) -> str:
    """Normalize a --time-after value; empty means the default lookback.

    Raises:
        ValidationError: If the value is neither YYYY-MM-DD nor ISO-8601.
    """
    value = (value or "").strip()
    if not value:
        return default_time_after()
    if _DATE_ONLY.match(value):
        try:
            date.fromisoformat(value)
        except ValueError as e:
            raise ValidationError(f"Invalid --time-after date: {value}", "time_after", value) from e
        return f"{value}T00:00:00Z"
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(
            f"Invalid --time-after value '{value}' (expected YYYY-MM-DD or ISO-8601)",
            "time_after",
            value,
        ) from e
    return value


def project_description(name: str, plugin_names: list[str]) -> str:
    if plugin_names:
        return f"DevLake metrics for {name} ({', '.join(plugin_names)})"
    return f"DevLake metrics for {name}"


class ProjectFinalizer:
    """Ensures the project exists and configures its blueprint."""

    def __init__(self, client: DevLakeClient):
        self.client = client

    def ensure_project(self, name: str, plugin_names: list[str] | None = None) -> int:
        """Create the project, or reuse an existing one with the same name.

        Returns:
            The project's blueprint ID.

        Raises:
            ProjectUnavailableError: If the project can be neither created nor fetched,
                or it has no blueprint.
        """
        project = Project(
            name=name,
            description=project_description(name, plugin_names or []),
            metrics=[ProjectMetric(plugin_name=p) for p in settings.PROJECT_METRIC_PLUGINS],
        )

        create_error: DevLakeAPIError | None = None
        try:
            created = self.client.create_project(project)
            if created.blueprint is not None:
                return created.blueprint.id
        except DevLakeAPIError as e:
            create_error = e
            logger.debug(f"Project create failed, fetching existing '{name}': {e}")

        try:
            existing = self.client.get_project(name)
        except DevLakeAPIError as get_error:
            raise ProjectUnavailableError(
                f"Could not create or find project '{name}': "
                f"create failed: {create_error}; get failed: {get_error}"
            ) from get_error
        if existing.blueprint is None:
            raise ProjectUnavailableError(f"Project '{name}' has no blueprint")
        return existing.blueprint.id

    def patch_blueprint(
        self,
        blueprint_id: int,
        connections: list[BlueprintConnection],
        cron: str = settings.DEFAULT_CRON,
        time_after: str | None = None,
        enable: bool = True,
    ) -> BlueprintPatch:
        """Replace the blueprint's connection list and schedule.

        Raises:
            BlueprintConfigureFailedError: If a scope has an empty id or the PATCH fails.
        """
        for connection in connections:
            for scope in connection.scopes:
                if not scope.scope_id.strip():
                    raise BlueprintConfigureFailedError(
                        f"Connection {connection.connection_id} ({connection.plugin_name}) "
                        "has a scope with an empty identifier; set --org or --enterprise"
                    )

        patch = BlueprintPatch(
            enable=enable,
            cron_config=cron or settings.DEFAULT_CRON,
            time_after=time_after or default_time_after(),
            connections=connections,
        )
        try:
            self.client.patch_blueprint(blueprint_id, patch)
        except DevLakeAPIError as e:
            raise BlueprintConfigureFailedError(f"Failed to configure blueprint: {e}") from e
        return patch
