"""Show command for printing one kit's parsed structure."""

from pathlib import Path

import click

from kit_composer.cli.output import user_output
from kit_composer.commands.options import build_context, location_options
from kit_composer.error_boundary import cli_error_boundary
from kit_composer.errors import UnknownKitError
from kit_composer.io.catalog import load_catalog
from kit_composer.io.manifest import SECTION_CONTRACTS
from kit_composer.models.catalog import parse_kit_request
from kit_composer.models.kit import Kit


def _heading(title: str) -> None:
    user_output()
    user_output(click.style(title, bold=True))


def _bullets(items: list[str]) -> None:
    for item in items:
        user_output(f"  - {item}")


def render_kit_details(kit: Kit) -> None:
    user_output(click.style(kit.ref, fg="cyan", bold=True) + f"  {kit.alias}")
    if kit.description:
        user_output(kit.description)
    user_output(f"type: {kit.type.value}   base: {'yes' if kit.is_base else 'no'}")
    if kit.tags:
        user_output(f"tags: {', '.join(sorted(kit.tags))}")
    if kit.source_path is not None:
        user_output(f"source: {kit.source_path}")

    if kit.hard_dependencies:
        _heading("Requires")
        _bullets(sorted(kit.hard_dependencies))
    if kit.soft_dependencies:
        _heading("Soft dependencies")
        _bullets([f"{soft.kind}: {soft.value}" for soft in sorted(kit.soft_dependencies)])
    if kit.notes:
        _heading("Notes")
        _bullets(list(kit.notes))

    if kit.end_state:
        _heading("End State")
        _bullets(list(kit.end_state))
    if kit.principles:
        _heading("Implementation Principles")
        _bullets(list(kit.principles))

    if kit.placeholders:
        _heading("Placeholders")
        for name in sorted(kit.placeholders):
            spec = kit.placeholder_specs.get(name)
            if spec is not None and spec.default is not None:
                source = f"default {spec.default!r}"
            elif spec is not None and spec.generate is not None:
                source = f"generated ({spec.generate})"
            else:
                source = "required (--var)"
            user_output(f"  - {{{{{name}}}}}: {source}")

    if kit.files:
        _heading("Files")
        for entry in kit.files:
            line = f"  - {entry.path} [{entry.policy.value}]"
            if entry.anchor is not None:
                line += f" {entry.position} {entry.anchor!r}"
            user_output(line)

    contracts = kit.sections.get(SECTION_CONTRACTS, "").strip()
    if contracts:
        _heading("Interface Contracts")
        user_output(contracts)

    if kit.verification:
        _heading("Verification Criteria")
        _bullets([f"{c.text} ({c.kind})" for c in kit.verification])


@click.command("show")
@click.argument("kit_id")
@location_options
@click.pass_context
@cli_error_boundary
def show(ctx: click.Context, kit_id: str, project_dir: Path, catalog_dir: Path | None) -> None:
    """Show the parsed structure of KIT_ID (optionally id@version)."""
    request = parse_kit_request(kit_id)
    composer = build_context(ctx, project_dir, catalog_dir)
    catalog = load_catalog(composer.config.catalog_dir)

    kit = catalog.get(request.kit_id, request.version)
    if kit is None:
        raise UnknownKitError([str(request)])
    render_kit_details(kit)
