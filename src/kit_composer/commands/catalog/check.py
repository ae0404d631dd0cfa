"""Check command for validating a whole catalog."""

from pathlib import Path

import click

from kit_composer.cli.output import user_output
from kit_composer.commands.options import build_context, location_options
from kit_composer.error_boundary import cli_error_boundary
from kit_composer.io.catalog import load_catalog
from kit_composer.operations.graph import validate_catalog


@click.command("check")
@click.option("-v", "--verbose", is_flag=True, help="Also list unmatched prerequisite notes")
@location_options
@click.pass_context
@cli_error_boundary
def check(
    ctx: click.Context, verbose: bool, project_dir: Path, catalog_dir: Path | None
) -> None:
    """Validate every manifest, id, base ordering and dependency cycle.

    Exits 1 listing every problem found.
    """
    composer = build_context(ctx, project_dir, catalog_dir)
    catalog = load_catalog(composer.config.catalog_dir)
    graph = validate_catalog(catalog)

    for warning in graph.warnings:
        user_output(click.style(f"Warning: {warning}", fg="yellow"))
    if verbose:
        for kit in catalog:
            for note in kit.notes:
                user_output(f"  {kit.id}: unmatched prerequisite: {note}")

    user_output(click.style("✓ ", fg="green") + f"Catalog is valid ({len(catalog)} kit(s))")
