"""Output helpers for CLI commands.

user_output writes human-facing text to stderr; machine_output writes data
meant for pipes and scripts to stdout.
"""

from typing import Any

import click
from rich.console import Console


def user_output(message: Any = "", nl: bool = True) -> None:
    click.echo(message, err=True, nl=nl)


def machine_output(message: Any = "", nl: bool = True) -> None:
    click.echo(message, nl=nl)


def user_console() -> Console:
    """Rich console bound to stderr, consistent with user_output."""
    return Console(stderr=True, width=200, highlight=False)
