"""Options and context construction shared by commands."""

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import ParamSpec, TypeVar

import click

from kit_composer.config import parse_var
from kit_composer.context import ComposerContext, create_context


P = ParamSpec("P")
T = TypeVar("T")


def location_options(f: Callable[P, T]) -> Callable[P, T]:
    """--project and --catalog, shared by every command that reads a catalog."""
    f = click.option(
        "--catalog",
        "catalog_dir",
        type=click.Path(path_type=Path, file_okay=False),
        help="Directory of kit manifests (default: 'catalog' from kit-composer.toml, or kits/)",
    )(f)
    f = click.option(
        "--project",
        "project_dir",
        type=click.Path(path_type=Path, file_okay=False),
        default=Path("."),
        show_default=True,
        help="Project directory the kits are applied to",
    )(f)
    return f


def parse_vars(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated --var KEY=VALUE options; later values win."""
    variables: dict[str, str] = {}
    for value in values:
        key, var_value = parse_var(value)
        variables[key] = var_value
    return variables


def build_context(
    click_ctx: click.Context,
    project_dir: Path,
    catalog_dir: Path | None,
    *,
    strict: bool | None = None,
    verify_timeout: float | None = None,
    variables: dict[str, str] | None = None,
) -> ComposerContext:
    """Create the context for a command, or reuse one injected by a test."""
    obj = click_ctx.obj if isinstance(click_ctx.obj, dict) else {}
    if catalog_dir is not None:
        catalog_dir = catalog_dir.resolve()

    injected = obj.get("composer")
    if isinstance(injected, ComposerContext):
        config = injected.config.with_overrides(
            catalog_dir=catalog_dir,
            strict=strict,
            verify_timeout=verify_timeout,
            variables=variables,
        )
        return replace(injected, config=config)

    return create_context(
        project_dir.resolve(),
        debug=bool(obj.get("debug", False)),
        catalog_dir=catalog_dir,
        strict=strict,
        verify_timeout=verify_timeout,
        variables=variables,
    )
