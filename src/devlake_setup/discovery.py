"""Locate a running DevLake backend."""

import json
import logging
from pathlib import Path

import httpx
from pydantic import BaseModel

from . import settings
from .exceptions import DiscoveryError
from .paths import state_file_candidates

logger = logging.getLogger(__name__)


class DiscoveryResult(BaseModel):
    url: str
    grafana_url: str | None = None
    source: str  # parameter, statefile, localhost


def ping_url(base_url: str, transport: httpx.BaseTransport | None = None) -> str | None:
    """Probe ``{base_url}/ping``.

    Returns:
        None when the backend answered 200, otherwise a short reason.
    """
    try:
        with httpx.Client(timeout=settings.PING_TIMEOUT, transport=transport) as client:
            response = client.get(f"{base_url}/ping")
    except httpx.RequestError as e:
        return str(e) or type(e).__name__
    if response.status_code != 200:
        return f"status {response.status_code}"
    return None


def _from_state_file(
    path: Path, transport: httpx.BaseTransport | None
) -> DiscoveryResult | None:
    if not path.exists():
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except ValueError:
        logger.debug(f"Skipping unreadable state file {path}")
        return None

    if not isinstance(data, dict):
        return None
    endpoints = data.get("endpoints") or {}
    url = (endpoints.get("backend") or "").rstrip("/")
    if not url:
        return None
    if reason := ping_url(url, transport):
        logger.debug(f"Backend {url} from {path.name} is not reachable: {reason}")
        return None
    return DiscoveryResult(
        url=url, grafana_url=endpoints.get("grafana") or None, source="statefile"
    )


def discover(
    explicit_url: str | None = None,
    directory: Path | str | None = None,
    transport: httpx.BaseTransport | None = None,
) -> DiscoveryResult:
    """Find a reachable DevLake backend.

    Priority: explicit URL, then state files in ``directory``, then the
    well-known local ports.

    Raises:
        DiscoveryError: If the explicit URL is unreachable or nothing was found.
    """
    if explicit_url:
        url = explicit_url.rstrip("/")
        if reason := ping_url(url, transport):
            raise DiscoveryError(f"Cannot reach DevLake at {url}: {reason}")
        return DiscoveryResult(url=url, source="parameter")

    for candidate in state_file_candidates(directory):
        if result := _from_state_file(candidate, transport):
            return result

    for backend, grafana in settings.LOCAL_ENDPOINTS:
        if ping_url(backend, transport) is None:
            return DiscoveryResult(url=backend, grafana_url=grafana, source="localhost")

    checked = ", ".join(b.removeprefix("http://") for b, _ in settings.LOCAL_ENDPOINTS)
    raise DiscoveryError(
        "Could not find a running DevLake instance.\n"
        f"Checked: state files, {checked}.\n"
        "Specify an existing instance with --url <DevLake API URL> "
        "or store one with 'devlake-setup config set-url <url>'."
    )
