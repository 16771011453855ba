"""devlake-setup - configure Apache DevLake for DORA metrics."""

from .client import DevLakeClient
from .models import BlueprintConnection, Connection, DeploymentState, OrgScope, RepoScope
from .registry import PLUGINS, PluginDescriptor, find_plugin
from .settings import VERSION as __version__

__all__ = [
    "BlueprintConnection",
    "Connection",
    "DeploymentState",
    "DevLakeClient",
    "OrgScope",
    "PLUGINS",
    "PluginDescriptor",
    "RepoScope",
    "find_plugin",
]
