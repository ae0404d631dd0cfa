"""Run an apply plan against a project's working tree.

A run walks the plan state machine:

    Pending -> Resolving -> Blocked                (resolution error, nothing touched)
                         -> Ready -> Applying ...  (one kit at a time, in plan order)
                                  -> Done          (every kit applied)
                                  -> Aborted       (conflict, or strict verify failure)

Each kit is merged into an in-memory copy of the tree first. Only a kit whose
whole file set merged cleanly is written to disk, so a failing kit never leaves
partial changes behind. Kits committed before a failure stay committed.
"""

import logging
from collections.abc import Sequence

from kit_composer.context import ComposerContext
from kit_composer.errors import (
    CommitFailedError,
    ConflictError,
    KitComposerError,
    ResolutionError,
    UnresolvedPlaceholderError,
    VerifyFailed,
)
from kit_composer.io.catalog import load_catalog
from kit_composer.io.tree import commit_tree, load_working_tree, with_untracked_files
from kit_composer.models.catalog import Catalog, KitRequest
from kit_composer.models.kit import Kit
from kit_composer.models.plan import ApplyPlan, ApplyReport, KitOutcome, KitResult, PlanState
from kit_composer.models.tree import WorkingTree
from kit_composer.operations.merge import merge_kit
from kit_composer.operations.resolver import resolve_plan
from kit_composer.operations.template import PlanValues, find_unresolved, render_kit
from kit_composer.operations.verify import VerifyOptions, verify_kit

logger = logging.getLogger(__name__)


def _block(report: ApplyReport, error: ResolutionError) -> ApplyReport:
    logger.debug("Plan blocked: %s", error)
    report.error = error
    report.transition(PlanState.BLOCKED)
    return report


def _abort(report: ApplyReport, error: KitComposerError, remaining: Sequence[Kit]) -> ApplyReport:
    for kit in remaining:
        report.results.append(
            KitResult(kit_id=kit.id, version=kit.version, outcome=KitOutcome.SKIPPED)
        )
    logger.debug("Plan aborted: %s", error)
    report.error = error
    report.transition(PlanState.ABORTED)
    return report


def _resolve(
    ctx: ComposerContext,
    requests: Sequence[KitRequest],
    catalog: Catalog | None,
    strict: bool,
) -> ApplyPlan:
    if catalog is None:
        catalog = load_catalog(ctx.config.catalog_dir)
    plan = resolve_plan(requests, catalog, strict=strict)

    missing = find_unresolved(plan.kits, ctx.config.variables)
    if missing:
        raise UnresolvedPlaceholderError(missing)
    return plan


def run_plan(
    ctx: ComposerContext,
    requests: Sequence[KitRequest],
    *,
    strict: bool | None = None,
    dry_run: bool = False,
    catalog: Catalog | None = None,
) -> ApplyReport:
    """Resolve requests and apply the resulting plan.

    Args:
        ctx: Composer context (integrations, config, project directory)
        requests: Requested kits, optionally pinned to a version
        strict: Fail on missing hard dependencies and on failed verification.
            None uses the configured default.
        dry_run: Compute every change and run offline checks without writing
        catalog: Catalog snapshot to use instead of loading the configured one

    Returns:
        ApplyReport in a terminal state. Blocked and Aborted runs carry the
        error that stopped them; nothing is raised for those.

    Raises:
        FileNotFoundError: If the catalog directory does not exist
        ValueError: If the project's ledger is malformed
        OSError: If writing the project fails
    """
    if strict is None:
        strict = ctx.config.strict

    report = ApplyReport(dry_run=dry_run)
    report.transition(PlanState.RESOLVING)
    try:
        plan = _resolve(ctx, requests, catalog, strict)
    except ResolutionError as e:
        return _block(report, e)

    report.plan = plan
    report.warnings.extend(plan.warnings)
    report.transition(PlanState.READY)

    tree = load_working_tree(ctx.project_dir)
    values = PlanValues(ctx.config.variables)
    options = VerifyOptions(
        timeout=ctx.config.verify_timeout,
        retries=ctx.config.verify_retries,
        run_live=not dry_run,
    )

    for index, kit in enumerate(plan.kits):
        report.transition(PlanState.APPLYING)
        logger.debug("Applying %s (%d/%d)", kit.ref, index + 1, len(plan))

        try:
            rendered = render_kit(kit, values, ctx.secret_generator)
            candidate = with_untracked_files(
                tree, ctx.project_dir, [entry.path for entry in rendered.files]
            )
            merged = merge_kit(candidate, kit.id, rendered.files)
        except (ConflictError, ResolutionError) as e:
            report.results.append(
                KitResult(
                    kit_id=kit.id,
                    version=kit.version,
                    outcome=KitOutcome.CONFLICT_FAILED,
                    message=str(e),
                )
            )
            return _abort(report, e, plan.kits[index + 1 :])

        merged = merged.with_applied_kit(kit.id, kit.version)
        if dry_run:
            changed = candidate.changed_paths(merged)
        else:
            try:
                changed = commit_tree(ctx.project_dir, candidate, merged)
            except OSError as e:
                error = CommitFailedError(kit.id, str(e))
                report.results.append(
                    KitResult(
                        kit_id=kit.id,
                        version=kit.version,
                        outcome=KitOutcome.CONFLICT_FAILED,
                        message=str(error),
                    )
                )
                return _abort(report, error, plan.kits[index + 1 :])
        tree = _forget_untracked(merged)

        checks = verify_kit(
            kit,
            rendered,
            merged,
            None if dry_run else ctx.project_dir,
            probe=ctx.http_probe,
            time=ctx.time,
            options=options,
        )
        result = KitResult(
            kit_id=kit.id,
            version=kit.version,
            outcome=KitOutcome.APPLIED,
            changed_paths=tuple(changed),
            checks=tuple(checks),
        )

        failed = result.failed_checks
        if not failed:
            report.results.append(result)
            continue

        descriptions = [f"{check.criterion}: {check.detail}" for check in failed]
        report.results.append(
            KitResult(
                kit_id=kit.id,
                version=kit.version,
                outcome=KitOutcome.VERIFY_FAILED,
                changed_paths=result.changed_paths,
                checks=result.checks,
                message="; ".join(descriptions),
            )
        )
        if strict:
            return _abort(report, VerifyFailed(kit.id, descriptions), plan.kits[index + 1 :])
        report.warnings.extend(f"{kit.id}: verification failed: {d}" for d in descriptions)

    report.transition(PlanState.DONE)
    return report


def _forget_untracked(tree: WorkingTree) -> WorkingTree:
    """Drop files no kit owns; later kits re-read them from disk when needed."""
    kept = {path: tracked for path, tracked in tree.files.items() if tracked.policy is not None}
    if len(kept) == len(tree.files):
        return tree
    return WorkingTree(files=kept, patches=tree.patches, applied_kits=tree.applied_kits)
