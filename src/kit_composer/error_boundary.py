"""Error boundary handling for CLI commands.

This module provides a decorator that catches well-known exceptions at CLI entry
points and displays clean error messages without stack traces.
"""

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import click

from kit_composer.config import debug_from_env
from kit_composer.errors import KitComposerError


def _debug_enabled() -> bool:
    ctx = click.get_current_context(silent=True)
    while ctx is not None:
        if isinstance(ctx.obj, dict) and ctx.obj.get("debug"):
            return True
        ctx = ctx.parent
    return debug_from_env()


T = TypeVar("T", bound=Callable[..., Any])


def cli_error_boundary(func: T) -> T:
    """Decorator that catches well-known exceptions and displays clean error messages.

    Catches:
        - KitComposerError: Resolution (exit 1), conflict (exit 2) and
          verification (exit 3) failures
        - FileNotFoundError: Missing catalog or project directories
        - ValueError: Invalid input or configuration
        - PermissionError: Permission denied errors

    With --debug (or KIT_COMPOSER_DEBUG=1) the exception is re-raised so the
    full stack trace is shown. All other exceptions bubble up normally.

    Example:
        @click.command()
        @cli_error_boundary
        def my_command():
            ...
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except KitComposerError as e:
            if _debug_enabled():
                raise
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(e.exit_code) from None
        except (FileNotFoundError, PermissionError, ValueError) as e:
            if _debug_enabled():
                raise
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1) from None

    return wrapper  # type: ignore[return-value]
