"""Configuration phases: connections, scopes, project and the first sync."""

from .connections import ConnectionParams, ConnectionResolver, ConnectionResult
from .orchestrator import ConfigurationPipeline, connect
from .poller import PipelinePoller, PollOutcome, PollResult
from .project import ProjectFinalizer
from .scopes import ScopeConfigurator, ScopeResult

__all__ = [
    "ConfigurationPipeline",
    "ConnectionParams",
    "ConnectionResolver",
    "ConnectionResult",
    "PipelinePoller",
    "PollOutcome",
    "PollResult",
    "ProjectFinalizer",
    "ScopeConfigurator",
    "ScopeResult",
    "connect",
]
