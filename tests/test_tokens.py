"""Tests for token resolution."""

from unittest.mock import MagicMock, patch

import pytest

from devlake_setup.exceptions import KeyringUnavailableError, NoTokenAvailableError
from devlake_setup.tokens import cleanup_env_file, mask_token, resolve_token

KEYS = ["GITHUB_PAT", "GITHUB_TOKEN", "GH_TOKEN"]
ENV_VARS = ["GITHUB_TOKEN", "GH_TOKEN"]


def resolve(explicit=None, env_file=None, stored=None, interactive=False):
    return resolve_token(
        explicit,
        env_file,
        KEYS,
        ENV_VARS,
        "GitHub",
        scope_hint="repo, read:org",
        stored_token=stored,
        interactive=interactive,
    )


class TestPrecedence:
    """Test the order in which token sources are consulted."""

    def test_flag_wins(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".devlake.env"
        env_file.write_text("GITHUB_PAT=from-file\n")
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")

        result = resolve("from-flag", env_file, stored=lambda: "from-keyring")

        assert (result.token, result.source) == ("from-flag", "flag")
        assert result.env_file_path is None

    def test_env_file_before_environment(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".devlake.env"
        env_file.write_text("GITHUB_TOKEN='from-file'\n")
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")

        result = resolve(env_file=env_file)

        assert (result.token, result.source) == ("from-file", "envfile")
        assert result.env_file_path == str(env_file)

    def test_env_file_key_order(self, tmp_path):
        env_file = tmp_path / ".devlake.env"
        env_file.write_text("GH_TOKEN=third\nGITHUB_PAT=first\n")

        assert resolve(env_file=env_file).token == "first"

    def test_environment_before_keyring(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "from-env")

        result = resolve(env_file=tmp_path / "missing.env", stored=lambda: "from-keyring")

        assert (result.token, result.source) == ("from-env", "environment")

    def test_keyring_before_prompt(self):
        result = resolve(stored=lambda: "from-keyring", interactive=True)

        assert (result.token, result.source) == ("from-keyring", "keyring")

    def test_unavailable_keyring_is_skipped(self):
        stored = MagicMock(side_effect=KeyringUnavailableError("no backend"))

        with pytest.raises(NoTokenAvailableError):
            resolve(stored=stored)

        stored.assert_called_once()


class TestPrompt:
    """Test the interactive fallback."""

    def test_prompt_when_interactive(self):
        with patch("devlake_setup.tokens.typer.prompt", return_value="  typed  ") as prompt:
            result = resolve(interactive=True)

        assert (result.token, result.source) == ("typed", "prompt")
        assert prompt.call_args.kwargs["hide_input"] is True

    def test_empty_prompt_raises(self):
        with patch("devlake_setup.tokens.typer.prompt", return_value="   "):
            with pytest.raises(NoTokenAvailableError):
                resolve(interactive=True)

    def test_no_prompt_when_not_interactive(self):
        with patch("devlake_setup.tokens.typer.prompt") as prompt:
            with pytest.raises(NoTokenAvailableError, match="No GitHub token found"):
                resolve()

        prompt.assert_not_called()


class TestMaskToken:
    @pytest.mark.parametrize(
        ("token", "expected"),
        [("ghp_abcdef1234", "****1234"), ("abcd", "****"), ("", "****"), ("abcde", "****bcde")],
    )
    def test_masking(self, token, expected):
        assert mask_token(token) == expected


class TestCleanupEnvFile:
    def test_deletes_file(self, tmp_path):
        env_file = tmp_path / ".devlake.env"
        env_file.write_text("GITHUB_PAT=x\n")

        assert cleanup_env_file(env_file) is True
        assert not env_file.exists()

    def test_missing_file(self, tmp_path):
        assert cleanup_env_file(tmp_path / ".devlake.env") is False
