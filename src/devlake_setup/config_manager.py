"""Configuration and credential management for devlake-setup."""

import logging
import platform
from pathlib import Path
from typing import Any

import keyring
import yaml
from keyring.errors import KeyringError, PasswordDeleteError

from . import settings
from .exceptions import KeyringUnavailableError
from .paths import get_config_dir

logger = logging.getLogger(__name__)

# Settings that `config set` accepts, with their value types
VALID_SETTINGS: dict[str, type] = {
    "pipeline_timeout": int,
    "request_timeout": int,
}


def get_keyring_setup_instructions() -> str:
    """Get platform-specific hints for making a keyring backend available."""
    system = platform.system()

    if system == "Linux":
        return (
            "Install a keyring backend (e.g. sudo apt-get install gnome-keyring).\n"
            "For headless/SSH sessions start one inside a D-Bus session:\n"
            "  dbus-run-session -- bash\n"
            "Or skip --remember-token and keep the token in .devlake.env instead."
        )
    if system == "Darwin":
        return "macOS should use the Keychain automatically; check Keychain access permissions."
    if system == "Windows":
        return "Windows should use the Credential Manager automatically; check it is enabled."
    return "See https://github.com/jaraco/keyring#third-party-backends"


class ConfigManager:
    """Manages the user config file and tokens stored in the keyring."""

    KEYRING_SERVICE = "devlake-setup"
    CONFIG_DIR = get_config_dir()
    CONFIG_FILE = CONFIG_DIR / "config.yaml"

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the config manager.

        Args:
            config_dir: Override for the config directory (defaults to CONFIG_DIR).
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
            self.config_file = self.config_dir / "config.yaml"
        else:
            self.config_dir = self.CONFIG_DIR
            self.config_file = self.CONFIG_FILE

    def _ensure_config_dir(self) -> None:
        """Ensure the config directory exists."""
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> dict[str, Any]:
        """Load configuration from file.

        Returns:
            Configuration dictionary, or default config if file doesn't exist.
        """
        if not self.config_file.exists():
            return self._get_default_config()

        with open(self.config_file) as f:
            config = yaml.safe_load(f) or self._get_default_config()

        # Fill in sections added after the file was written
        for key, value in self._get_default_config().items():
            config.setdefault(key, value)
        return config

    def save_config(self, config: dict[str, Any]) -> None:
        """Save configuration to file.

        Args:
            config: Configuration dictionary to save.
        """
        self._ensure_config_dir()
        with open(self.config_file, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    def _get_default_config(self) -> dict[str, Any]:
        """Get default configuration structure."""
        return {
            "default_url": None,
            "settings": {
                "pipeline_timeout": settings.PIPELINE_TIMEOUT,
                "request_timeout": settings.REQUEST_TIMEOUT,
            },
            "recent_values": {"organizations": [], "enterprises": []},
        }

    # Default backend URL
    def get_default_url(self) -> str | None:
        return self.load_config().get("default_url")

    def set_default_url(self, url: str | None) -> None:
        config = self.load_config()
        config["default_url"] = url.rstrip("/") if url else None
        self.save_config(config)

    # Settings
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a setting value.

        Args:
            key: Setting key.
            default: Default value if setting not found.

        Returns:
            Setting value or default.
        """
        config = self.load_config()
        return config.get("settings", {}).get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        """Set a setting value.

        Args:
            key: Setting key.
            value: Setting value.
        """
        config = self.load_config()
        if "settings" not in config:
            config["settings"] = {}
        config["settings"][key] = value
        self.save_config(config)

    # Recent values management
    def add_recent_value(self, category: str, value: str, max_items: int = 10) -> None:
        """Add a recently used value to a category.

        Args:
            category: Category name (e.g., 'organizations').
            value: Value to add.
            max_items: Maximum number of recent items to keep (default: 10).
        """
        config = self.load_config()
        recent = config.setdefault("recent_values", {}).setdefault(category, [])

        if value in recent:
            recent.remove(value)
        recent.insert(0, value)
        config["recent_values"][category] = recent[:max_items]

        self.save_config(config)

    def get_recent_values(self, category: str) -> list[str]:
        """Get recently used values from a category (most recent first)."""
        config = self.load_config()
        return config.get("recent_values", {}).get(category, [])

    # Credential management (keyring)
    def _token_account(self, plugin: str) -> str:
        return f"token:{plugin}"

    def set_token(self, plugin: str, token: str) -> None:
        """Store a plugin token securely in the keyring.

        Raises:
            KeyringUnavailableError: If keyring backend is not available.
        """
        try:
            keyring.set_password(self.KEYRING_SERVICE, self._token_account(plugin), token)
        except KeyringError as e:
            raise KeyringUnavailableError(
                f"Failed to store {plugin} token in keyring: {e}",
                instructions=get_keyring_setup_instructions(),
            ) from e

    def get_token(self, plugin: str) -> str | None:
        """Retrieve a stored plugin token.

        Returns:
            Token, or None if not stored.

        Raises:
            KeyringUnavailableError: If keyring backend is not available.
        """
        try:
            return keyring.get_password(self.KEYRING_SERVICE, self._token_account(plugin))
        except KeyringError as e:
            raise KeyringUnavailableError(
                f"Failed to retrieve {plugin} token from keyring: {e}",
                instructions=get_keyring_setup_instructions(),
            ) from e

    def delete_token(self, plugin: str) -> bool:
        """Delete a stored plugin token.

        Returns:
            True if a token was removed, False if none was stored.
        """
        try:
            keyring.delete_password(self.KEYRING_SERVICE, self._token_account(plugin))
        except PasswordDeleteError:
            return False
        except KeyringError as e:
            raise KeyringUnavailableError(
                f"Failed to delete {plugin} token from keyring: {e}",
                instructions=get_keyring_setup_instructions(),
            ) from e
        return True
