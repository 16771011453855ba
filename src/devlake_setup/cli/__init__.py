"""CLI package for devlake-setup.

This package contains the main CLI application and all command modules:
- main: Root app, logging setup and the status command
- configure: Connections, scopes, project and the full workflow
- connection: Connection list/test/update/delete
- config: Configuration commands
- display: Display helper functions
"""

from .main import app

__all__ = ["app"]
