"""Apply command: resolve kits and compose them into the project."""

from pathlib import Path

import click
from rich.table import Table

from kit_composer.cli.output import user_console, user_output
from kit_composer.commands.options import build_context, location_options, parse_vars
from kit_composer.error_boundary import cli_error_boundary
from kit_composer.models.catalog import parse_kit_request
from kit_composer.models.plan import ApplyReport, KitOutcome, PlanState
from kit_composer.operations.apply import run_plan

_OUTCOME_STYLES = {
    KitOutcome.APPLIED: "green",
    KitOutcome.SKIPPED: "dim",
    KitOutcome.CONFLICT_FAILED: "red",
    KitOutcome.VERIFY_FAILED: "yellow",
}


def format_report_table(report: ApplyReport) -> Table:
    """Build a table with one row per kit in the plan."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("kit", style="cyan", no_wrap=True)
    table.add_column("version", justify="right")
    table.add_column("outcome", no_wrap=True)
    table.add_column("files", justify="right")
    table.add_column("checks", no_wrap=True)

    for result in report.results:
        checked = [check for check in result.checks if check.checked]
        passed = sum(1 for check in checked if check.passed)
        manual = len(result.checks) - len(checked)
        checks_cell = f"{passed}/{len(checked)}" if checked else "-"
        if manual:
            checks_cell += f" (+{manual} manual)"
        style = _OUTCOME_STYLES[result.outcome]
        table.add_row(
            result.kit_id,
            str(result.version),
            f"[{style}]{result.outcome.value}[/{style}]",
            str(len(result.changed_paths)),
            checks_cell,
        )
    return table


def render_report(report: ApplyReport) -> None:
    """Print a finished report to stderr."""
    if report.results:
        console = user_console()
        console.print(format_report_table(report))

    for result in report.results:
        for path in result.changed_paths:
            verb = "Would write" if report.dry_run else "Wrote"
            user_output(f"  {verb} {path} ({result.kit_id})")

    for warning in report.warnings:
        user_output(click.style(f"Warning: {warning}", fg="yellow"))

    if report.state is PlanState.DONE:
        applied = sum(1 for r in report.results if r.outcome is KitOutcome.APPLIED)
        suffix = " (dry run, nothing written)" if report.dry_run else ""
        total = len(report.results)
        user_output(click.style("✓ ", fg="green") + f"Applied {applied}/{total} kit(s){suffix}")


@click.command("apply")
@click.argument("kit_ids", nargs=-1, required=True)
@click.option(
    "--strict/--no-strict",
    default=None,
    help="Fail on missing hard dependencies and on failed verification",
)
@click.option("--dry-run", is_flag=True, help="Show what would change without writing anything")
@click.option(
    "--var",
    "var_values",
    multiple=True,
    metavar="KEY=VALUE",
    help="Placeholder value (can be specified multiple times)",
)
@click.option(
    "--verify-timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds allowed per live verification check",
)
@location_options
@click.pass_context
@cli_error_boundary
def apply(
    ctx: click.Context,
    kit_ids: tuple[str, ...],
    strict: bool | None,
    dry_run: bool,
    var_values: tuple[str, ...],
    verify_timeout: float | None,
    project_dir: Path,
    catalog_dir: Path | None,
) -> None:
    """Resolve KIT_IDS (optionally pinned as id@version) and apply them in order.

    Exit codes: 0 success, 1 resolution failure, 2 merge conflict,
    3 verification failure (with --strict).
    """
    requests = [parse_kit_request(kit_id) for kit_id in kit_ids]
    composer = build_context(
        ctx,
        project_dir,
        catalog_dir,
        strict=strict,
        verify_timeout=verify_timeout,
        variables=parse_vars(var_values),
    )

    report = run_plan(composer, requests, dry_run=dry_run)
    render_report(report)

    if report.error is not None:
        raise report.error
