"""List command for showing the kits in a catalog."""

from pathlib import Path

import click

from kit_composer.cli.output import user_output
from kit_composer.commands.options import build_context, location_options
from kit_composer.error_boundary import cli_error_boundary
from kit_composer.io.catalog import load_catalog


def _list_kits_impl(ctx: click.Context, project_dir: Path, catalog_dir: Path | None) -> None:
    composer = build_context(ctx, project_dir, catalog_dir)
    catalog = load_catalog(composer.config.catalog_dir)

    if len(catalog) == 0:
        user_output(f"No kits found in {composer.config.catalog_dir}")
        return

    user_output(f"{len(catalog)} kit(s) in {composer.config.catalog_dir}:\n")
    for kit in catalog:
        versions = catalog.versions(kit.id)
        version_cell = f"v{kit.version}"
        if len(versions) > 1:
            version_cell += f" (of {', '.join(str(v) for v in versions)})"
        base_cell = "base" if kit.is_base else ""
        tags = ", ".join(sorted(kit.tags))
        line = f"  {kit.id:<28} {version_cell:<12} {base_cell:<5} {kit.alias:<30} {tags}"
        user_output(line.rstrip())


@click.command("list")
@location_options
@click.pass_context
@cli_error_boundary
def list_kits(ctx: click.Context, project_dir: Path, catalog_dir: Path | None) -> None:
    """List every kit in the catalog (latest version of each id)."""
    _list_kits_impl(ctx, project_dir, catalog_dir)


@click.command("ls", hidden=True)
@location_options
@click.pass_context
@cli_error_boundary
def ls(ctx: click.Context, project_dir: Path, catalog_dir: Path | None) -> None:
    """List every kit in the catalog (alias of 'list')."""
    _list_kits_impl(ctx, project_dir, catalog_dir)
