"""Plan command: show the resolved application order without applying."""

from pathlib import Path

import click

from kit_composer.cli.output import machine_output, user_output
from kit_composer.commands.options import build_context, location_options
from kit_composer.error_boundary import cli_error_boundary
from kit_composer.io.catalog import load_catalog
from kit_composer.models.catalog import parse_kit_request
from kit_composer.operations.resolver import resolve_plan


@click.command("plan")
@click.argument("kit_ids", nargs=-1, required=True)
@click.option(
    "--strict/--no-strict",
    default=None,
    help="Fail on missing hard dependencies instead of auto-including them",
)
@location_options
@click.pass_context
@cli_error_boundary
def plan(
    ctx: click.Context,
    kit_ids: tuple[str, ...],
    strict: bool | None,
    project_dir: Path,
    catalog_dir: Path | None,
) -> None:
    """Print the order KIT_IDS would be applied in.

    One kit reference (id@version) per line goes to stdout; warnings go to stderr.
    """
    requests = [parse_kit_request(kit_id) for kit_id in kit_ids]
    composer = build_context(ctx, project_dir, catalog_dir, strict=strict)
    catalog = load_catalog(composer.config.catalog_dir)

    apply_plan = resolve_plan(requests, catalog, strict=composer.config.strict)

    for warning in apply_plan.warnings:
        user_output(click.style(f"Warning: {warning}", fg="yellow"))
    for kit in apply_plan.kits:
        machine_output(kit.ref)
    user_output(f"{len(apply_plan)} kit(s) in plan")
