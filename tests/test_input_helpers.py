"""Tests for input helper functions."""

from unittest.mock import MagicMock, patch

from devlake_setup.input_helpers import (
    prompt_enterprise,
    prompt_organization,
    select_many,
    select_one,
    select_or_new,
)


def questionary_answer(value):
    """A questionary prompt object whose ask() returns ``value``."""
    prompt = MagicMock()
    prompt.ask.return_value = value
    return prompt


class TestSelectOrNew:
    """Tests for select_or_new."""

    @patch("devlake_setup.input_helpers.typer.prompt", return_value="acme")
    def test_no_choices_prompts_directly(self, mock_prompt):
        assert select_or_new("Organization slug", []) == "acme"
        mock_prompt.assert_called_once_with("Organization slug")

    @patch("devlake_setup.input_helpers.typer.prompt", return_value="")
    def test_no_choices_skip(self, mock_prompt):
        assert select_or_new("Enterprise", [], allow_skip=True) is None

    @patch("devlake_setup.input_helpers.questionary.select")
    def test_existing_choice(self, mock_select):
        mock_select.return_value = questionary_answer("acme")

        assert select_or_new("Organization slug", ["acme", "other"]) == "acme"
        options = mock_select.call_args.kwargs["choices"]
        assert options == ["acme", "other", "Enter new value..."]

    @patch("devlake_setup.input_helpers.typer.prompt", return_value="fresh")
    @patch("devlake_setup.input_helpers.questionary.select")
    def test_enter_new(self, mock_select, mock_prompt):
        mock_select.return_value = questionary_answer("Enter new value...")

        assert select_or_new("Organization slug", ["acme"]) == "fresh"

    @patch("devlake_setup.input_helpers.questionary.select")
    def test_skip(self, mock_select):
        mock_select.return_value = questionary_answer("Skip (leave empty)")

        assert select_or_new("Enterprise", ["big-corp"], allow_skip=True) is None


class TestRecentValuePrompts:
    """Organization/enterprise prompts remember what was entered."""

    @patch("devlake_setup.input_helpers.typer.prompt", return_value="acme")
    def test_organization_is_remembered(self, mock_prompt, config_manager):
        assert prompt_organization() == "acme"

        assert config_manager.get_recent_values("organizations") == ["acme"]

    @patch("devlake_setup.input_helpers.questionary.select")
    def test_recent_organizations_are_offered(self, mock_select, config_manager):
        config_manager.add_recent_value("organizations", "acme")
        mock_select.return_value = questionary_answer("acme")

        prompt_organization()

        assert mock_select.call_args.kwargs["choices"][0] == "acme"

    @patch("devlake_setup.input_helpers.typer.prompt", return_value="")
    def test_skipped_enterprise_is_not_remembered(self, mock_prompt, config_manager):
        assert prompt_enterprise() is None

        assert config_manager.get_recent_values("enterprises") == []


class TestSelections:
    def test_empty_choices(self):
        assert select_one("Pick", []) is None
        assert select_many("Pick", []) == []

    @patch("devlake_setup.input_helpers.questionary.checkbox")
    def test_aborted_checkbox(self, mock_checkbox):
        mock_checkbox.return_value = questionary_answer(None)

        assert select_many("Pick", ["a", "b"]) == []
