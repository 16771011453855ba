"""Access token resolution.

Tokens are looked up in a fixed order, first non-empty value wins:

1. an explicit ``--token`` value
2. the first matching key in the env file (``.devlake.env`` by default)
3. the first matching environment variable
4. a token previously stored in the keyring with ``--remember-token``
5. a masked interactive prompt, only when stdin is a terminal
"""

import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path

import typer
from pydantic import BaseModel
from rich.console import Console

from .envfile import load_env_file
from .exceptions import KeyringUnavailableError, NoTokenAvailableError

logger = logging.getLogger(__name__)
console = Console()


class TokenResult(BaseModel):
    """A resolved token and where it came from."""

    token: str
    source: str  # flag, envfile, environment, keyring, prompt
    env_file_path: str | None = None  # Set when the env file supplied the token


def mask_token(token: str) -> str:
    """Mask all but the last four characters of a token.

    Examples:
        >>> mask_token("ghp_abcdef1234")
        '****1234'
        >>> mask_token("abc")
        '****'
    """
    if len(token) <= 4:
        return "****"
    return f"****{token[-4:]}"


def resolve_token(
    explicit: str | None,
    env_file_path: Path | str | None,
    env_file_keys: list[str],
    env_var_names: list[str],
    display_name: str,
    scope_hint: str = "",
    stored_token: Callable[[], str | None] | None = None,
    interactive: bool | None = None,
) -> TokenResult:
    """Resolve a token from the configured sources.

    Args:
        explicit: Value passed on the command line.
        env_file_path: Path of the KEY=VALUE secret file, if any.
        env_file_keys: Keys to look for in the env file, in order.
        env_var_names: Environment variables to look for, in order.
        display_name: Plugin display name used in the prompt.
        scope_hint: Required permission scopes, shown before prompting.
        stored_token: Callable returning a keyring-stored token.
        interactive: Whether prompting is allowed (defaults to stdin being a tty).

    Returns:
        TokenResult with the token and its source.

    Raises:
        NoTokenAvailableError: If no source had a token and prompting is not possible.
    """
    if explicit:
        return TokenResult(token=explicit, source="flag")

    if env_file_path:
        values = load_env_file(env_file_path)
        for key in env_file_keys:
            if values.get(key):
                logger.debug(f"Token found in {env_file_path} under {key}")
                return TokenResult(
                    token=values[key],
                    source="envfile",
                    env_file_path=str(env_file_path),
                )

    for name in env_var_names:
        if value := os.environ.get(name):
            logger.debug(f"Token found in environment variable {name}")
            return TokenResult(token=value, source="environment")

    if stored_token is not None:
        try:
            value = stored_token()
        except KeyringUnavailableError as e:
            logger.warning(f"Skipping stored token lookup: {e}")
            value = None
        if value:
            return TokenResult(token=value, source="keyring")

    if interactive is None:
        interactive = sys.stdin.isatty()
    if not interactive:
        raise NoTokenAvailableError(
            f"No {display_name} token found. Pass --token, add it to "
            f"{env_file_path or 'an env file'}, or set {' / '.join(env_var_names) or 'an environment variable'}."
        )

    if scope_hint:
        console.print(f"   [dim]Required scopes: {scope_hint}[/dim]")
    token = typer.prompt(f"{display_name} personal access token", hide_input=True)
    token = token.strip()
    if not token:
        raise NoTokenAvailableError(f"No {display_name} token entered")
    return TokenResult(token=token, source="prompt")


def cleanup_env_file(path: Path | str) -> bool:
    """Delete the env file once every plugin that needed it is done.

    Returns:
        True if the file was removed, False if it was already gone.
    """
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    return True
