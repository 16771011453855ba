"""Helper functions for interactive CLI input prompts."""

import sys

import questionary
import typer
from rich.console import Console

from .config_manager import ConfigManager

console = Console()


def is_interactive() -> bool:
    """Whether stdin is attached to a terminal."""
    return sys.stdin.isatty()


def select_or_new(
    prompt: str,
    choices: list[str],
    new_option_label: str = "Enter new value...",
    allow_skip: bool = False,
) -> str | None:
    """Present a select list with option to enter new value.

    Args:
        prompt: Prompt text to display
        choices: List of existing choices
        new_option_label: Label for the "enter new" option
        allow_skip: If True, allow skipping (returns None)

    Returns:
        Selected value or newly entered value, or None if skipped
    """
    if not choices:
        # No recent values, just prompt for new
        if allow_skip:
            value = typer.prompt(prompt, default="")
            return value if value else None
        return typer.prompt(prompt)

    options = choices.copy()
    options.append(new_option_label)
    if allow_skip:
        options.append("Skip (leave empty)")

    selection = questionary.select(
        prompt,
        choices=options,
        use_shortcuts=True,
        use_arrow_keys=True,
    ).ask()

    if selection == new_option_label:
        if allow_skip:
            value = typer.prompt("Enter value", default="")
            return value if value else None
        return typer.prompt("Enter value")
    elif allow_skip and selection == "Skip (leave empty)":
        return None
    else:
        return selection


def prompt_organization(
    prompt: str = "Organization slug",
    required: bool = True,
) -> str | None:
    """Prompt for an organization, offering recently used values."""
    config_manager = ConfigManager()
    value = select_or_new(
        prompt,
        config_manager.get_recent_values("organizations"),
        new_option_label="Enter new organization...",
        allow_skip=not required,
    )
    if value:
        config_manager.add_recent_value("organizations", value)
    return value


def prompt_enterprise(
    prompt: str = "Enterprise slug (optional)",
) -> str | None:
    """Prompt for an optional enterprise slug, offering recently used values."""
    config_manager = ConfigManager()
    value = select_or_new(
        prompt,
        config_manager.get_recent_values("enterprises"),
        new_option_label="Enter new enterprise...",
        allow_skip=True,
    )
    if value:
        config_manager.add_recent_value("enterprises", value)
    return value


def select_one(prompt: str, choices: list[str]) -> str | None:
    """Single choice from a list; None if the user aborts."""
    if not choices:
        return None
    return questionary.select(
        prompt, choices=choices, use_shortcuts=len(choices) <= 36, use_arrow_keys=True
    ).ask()


def select_many(prompt: str, choices: list[str]) -> list[str]:
    """Multiple choices from a list; empty if the user aborts."""
    if not choices:
        return []
    return questionary.checkbox(prompt, choices=choices).ask() or []


def prompt_text(prompt: str, default: str = "") -> str:
    """Free-text prompt where Enter accepts ``default``."""
    return typer.prompt(prompt, default=default, show_default=bool(default)).strip()
