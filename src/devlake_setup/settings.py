"""Simple settings for devlake-setup."""

from importlib.metadata import PackageNotFoundError, version


def get_version():
    """Get the current version of devlake-setup."""
    try:
        return version("devlake-setup")
    except PackageNotFoundError:
        # Fallback for development when package isn't installed
        return "dev"


# Application metadata
APP_NAME = "devlake-setup"
VERSION = get_version()

# HTTP timeouts (seconds)
REQUEST_TIMEOUT = 30  # Per-request timeout for the DevLake API
PING_TIMEOUT = 5  # Timeout for discovery health probes
SERVICE_CHECK_TIMEOUT = 8  # Timeout for status page service checks

# Pipeline polling configuration
PIPELINE_POLL_INTERVAL = 10  # Seconds between pipeline status checks
PIPELINE_TIMEOUT = 300  # Maximum time to wait for the first sync (5 minutes)

# Blueprint defaults
DEFAULT_CRON = "0 0 * * *"  # Daily at midnight
DEFAULT_LOOKBACK_MONTHS = 6  # Collect data since this many months ago
DEFAULT_PROJECT_NAME = "my-project"
PROJECT_METRIC_PLUGINS = ["dora"]

# DORA scope config defaults
SCOPE_CONFIG_NAME = "dora-config"
DEFAULT_DEPLOYMENT_PATTERN = "(?i)deploy"
DEFAULT_PRODUCTION_PATTERN = "(?i)prod"
DEFAULT_INCIDENT_LABEL = "incident"
REFDIFF_TAGS_PATTERN = ".*"
REFDIFF_TAGS_LIMIT = 10
REFDIFF_TAGS_ORDER = "reverse semver"

# Local files
DEFAULT_ENV_FILE = ".devlake.env"
STATE_FILE_NAMES = [".devlake-azure.json", ".devlake-local.json"]
LOCAL_STATE_FILE = ".devlake-local.json"

# Well-known local deployments: (backend, grafana)
LOCAL_ENDPOINTS = [
    ("http://localhost:8080", "http://localhost:3002"),
    ("http://localhost:8085", "http://localhost:3004"),
]

# Interactive repository listing
REPO_LIST_LIMIT = 30

# GitHub REST API
GITHUB_API_URL = "https://api.github.com"
