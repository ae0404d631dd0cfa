"""Public API for kit-composer.

This module provides a stable, high-level interface for tools that want to use
kit-composer as a library instead of through the CLI.

Example usage:
    from pathlib import Path
    from kit_composer.api import apply_kits, plan_kits

    # Preview the order kits would be applied in
    plan = plan_kits(Path("/path/to/kits"), ["stripe-checkout"])

    # Apply them to a project
    report = apply_kits(
        project_dir=Path("/path/to/project"),
        kit_ids=["foundation-auth", "stripe-checkout"],
        variables={"APP_NAME": "acme"},
    )
"""

from collections.abc import Mapping
from pathlib import Path

from kit_composer.context import create_context
from kit_composer.io.catalog import load_catalog
from kit_composer.models.catalog import Catalog, parse_kit_request
from kit_composer.models.plan import ApplyPlan, ApplyReport
from kit_composer.operations.apply import run_plan
from kit_composer.operations.resolver import resolve_plan

__all__ = [
    "apply_kits",
    "load_kits",
    "plan_kits",
]


def load_kits(catalog_dir: Path) -> Catalog:
    """Load and validate every kit manifest under catalog_dir.

    Raises:
        FileNotFoundError: If catalog_dir does not exist
        MalformedManifestError: Listing every malformed document
        DuplicateIdError: If an (id, version) pair is declared twice
    """
    return load_catalog(catalog_dir)


def plan_kits(catalog_dir: Path, kit_ids: list[str], *, strict: bool = False) -> ApplyPlan:
    """Resolve kit ids (``id`` or ``id@version``) into an ordered plan.

    Raises:
        ResolutionError: Any resolution failure (unknown, cyclic, unsatisfied, ...)
        ValueError: If a kit reference is malformed
    """
    requests = [parse_kit_request(kit_id) for kit_id in kit_ids]
    return resolve_plan(requests, load_catalog(catalog_dir), strict=strict)


def apply_kits(
    project_dir: Path,
    kit_ids: list[str],
    *,
    catalog_dir: Path | None = None,
    variables: Mapping[str, str] | None = None,
    strict: bool | None = None,
    dry_run: bool = False,
) -> ApplyReport:
    """Resolve kits and apply them to project_dir.

    Configuration is read from project_dir/kit-composer.toml; arguments given
    here override it.

    Args:
        project_dir: Root directory of the generated project (must exist)
        kit_ids: Kit references (``id`` or ``id@version``)
        catalog_dir: Catalog location (default: from configuration)
        variables: Placeholder values
        strict: Strict mode (default: from configuration)
        dry_run: Compute changes without writing

    Returns:
        ApplyReport in a terminal state; inspect report.error for failures

    Raises:
        FileNotFoundError: If project_dir or the catalog directory does not exist
        ValueError: If configuration, the ledger or a kit reference is malformed

    Example:
        >>> report = apply_kits(Path("/repo"), ["foundation-auth"])
        >>> for result in report.results:
        ...     print(f"{result.kit_id}: {result.outcome.value}")
    """
    if not project_dir.exists():
        raise FileNotFoundError(f"Project directory does not exist: {project_dir}")

    requests = [parse_kit_request(kit_id) for kit_id in kit_ids]
    ctx = create_context(
        project_dir,
        debug=False,
        catalog_dir=catalog_dir,
        strict=strict,
        variables=dict(variables) if variables is not None else None,
    )
    return run_plan(ctx, requests, dry_run=dry_run)
