"""Custom exceptions for devlake-setup.

This module provides a hierarchical exception structure so the CLI can
report every failure with a single descriptive message while the
orchestrator decides which ones are fatal.
"""

from typing import Any


class DevLakeSetupError(Exception):
    """Base exception for all devlake-setup operations."""

    pass


class PhaseError(DevLakeSetupError):
    """A fatal failure that aborted one phase of the configuration run."""

    def __init__(self, message: str, phase: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.phase = phase
        self.details = details or {}


class ValidationError(DevLakeSetupError):
    """User-correctable input problems detected before any remote call."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class DevLakeAPIError(DevLakeSetupError):
    """DevLake REST API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class GitHubError(DevLakeSetupError):
    """GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class DiscoveryError(DevLakeSetupError):
    """No reachable DevLake backend could be found."""

    pass


class NoTokenAvailableError(DevLakeSetupError):
    """Every token source was empty and no terminal is attached to prompt."""

    pass


class ConnectionTestFailedError(DevLakeSetupError):
    """The pre-flight connection test was rejected."""

    def __init__(self, message: str, plugin: str | None = None):
        super().__init__(message)
        self.plugin = plugin


class ConnectionCreateFailedError(DevLakeSetupError):
    """Creating a connection failed."""

    def __init__(self, message: str, plugin: str | None = None):
        super().__init__(message)
        self.plugin = plugin


class NoRepositoriesResolvedError(DevLakeSetupError):
    """The repository selection came back empty."""

    pass


class NoRepositoryDetailsResolvedError(DevLakeSetupError):
    """None of the selected repositories could be looked up."""

    pass


class NoScopedConnectionsError(DevLakeSetupError):
    """No connection was scoped successfully, so there is nothing to schedule."""

    pass


class ProjectUnavailableError(DevLakeSetupError):
    """The project could neither be created nor fetched."""

    pass


class BlueprintConfigureFailedError(DevLakeSetupError):
    """Patching the blueprint failed."""

    pass


class PipelineFailedError(DevLakeSetupError):
    """The triggered pipeline reached TASK_FAILED."""

    def __init__(self, message: str, pipeline_id: int | None = None):
        super().__init__(message)
        self.pipeline_id = pipeline_id


class KeyringUnavailableError(DevLakeSetupError):
    """Keyring backend is not available or not functioning.

    Common causes include:
    - No keyring backend installed (e.g., gnome-keyring on Linux)
    - D-Bus session not configured (headless/SSH sessions)
    - Keyring daemon not running
    """

    def __init__(self, message: str, instructions: str | None = None):
        super().__init__(message)
        self.instructions = instructions
