"""Verification of applied kits.

Each kit's checklist bullets were classified at load time. File checks run
against the working tree (falling back to disk for files no kit tracks), HTTP
checks go through an injectable probe, and manual bullets are reported but
never executed. Every kit also gets an implicit check that none of its
placeholders survived into the files it wrote.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from kit_composer.integrations.http_probe.abc import HttpProbe, ProbeError
from kit_composer.integrations.time.abc import Time
from kit_composer.io.manifest import normalize_path, scan_placeholders, validate_relative_path
from kit_composer.models.kit import Kit, VerificationCriterion
from kit_composer.models.plan import CheckResult
from kit_composer.models.tree import WorkingTree
from kit_composer.operations.template import RenderedKit, substitute

logger = logging.getLogger(__name__)

PLACEHOLDER_CHECK = "All placeholders substituted"
BACKOFF_BASE_SECONDS = 1.0


@dataclass(frozen=True)
class VerifyOptions:
    """Knobs for live checks."""

    timeout: float
    retries: int
    run_live: bool


def _read(tree: WorkingTree, project_dir: Path | None, path: str) -> str | None:
    content = tree.read(path)
    if content is not None:
        return content
    if project_dir is None:
        return None
    file_path = project_dir / path
    if file_path.is_file():
        return file_path.read_text(encoding="utf-8")
    return None


def probe_http(
    url: str,
    expected_status: int,
    *,
    probe: HttpProbe,
    time: Time,
    timeout: float,
    retries: int,
) -> tuple[bool, str]:
    """GET url until it answers with expected_status.

    Retries with exponential backoff (1s, 2s, 4s, ...) up to retries extra
    attempts, never past the overall timeout.

    Returns:
        (passed, detail) where detail describes the last observed failure
    """
    deadline = time.monotonic() + timeout
    last_failure = "no attempt made"

    for attempt in range(retries + 1):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False, f"timeout after {timeout}s: {last_failure}"

        try:
            response = probe.get(url, timeout=remaining)
        except ProbeError as e:
            last_failure = str(e)
            if e.timed_out:
                return False, f"timeout after {timeout}s: {last_failure}"
        else:
            if response.status_code == expected_status:
                return True, f"HTTP {response.status_code}"
            last_failure = f"expected HTTP {expected_status}, got {response.status_code}"

        if attempt == retries:
            break

        delay = BACKOFF_BASE_SECONDS * (2**attempt)
        if time.monotonic() + delay >= deadline:
            return False, f"timeout after {timeout}s: {last_failure}"
        logger.debug("Probe %s failed (%s); retrying in %.0fs", url, last_failure, delay)
        time.sleep(delay)

    return False, last_failure


def check_criterion(
    criterion: VerificationCriterion,
    values: dict[str, str],
    tree: WorkingTree,
    project_dir: Path | None,
    *,
    probe: HttpProbe,
    time: Time,
    options: VerifyOptions,
) -> CheckResult:
    """Run one criterion."""
    if criterion.kind == "manual":
        return CheckResult(criterion=criterion.text, passed=True, detail="manual", checked=False)

    if criterion.kind == "http":
        if criterion.url is None:
            raise ValueError(f"HTTP criterion without URL: {criterion.text}")
        url = substitute(criterion.url, values)
        if not options.run_live:
            return CheckResult(
                criterion=criterion.text, passed=True, detail="live check skipped", checked=False
            )
        passed, detail = probe_http(
            url,
            criterion.expected_status,
            probe=probe,
            time=time,
            timeout=options.timeout,
            retries=options.retries,
        )
        return CheckResult(criterion=criterion.text, passed=passed, detail=detail)

    if criterion.path is None:
        raise ValueError(f"File criterion without path: {criterion.text}")
    path = normalize_path(substitute(criterion.path, values))
    path_error = validate_relative_path(path)
    if path_error is not None:
        return CheckResult(criterion=criterion.text, passed=False, detail=path_error)
    content = _read(tree, project_dir, path)
    if content is None:
        return CheckResult(criterion=criterion.text, passed=False, detail=f"{path} does not exist")

    if criterion.kind == "file_contains":
        needle = substitute(criterion.needle or "", values)
        if needle not in content:
            return CheckResult(
                criterion=criterion.text, passed=False, detail=f"{path} lacks {needle!r}"
            )
    return CheckResult(criterion=criterion.text, passed=True)


def check_placeholders(kit: Kit, rendered: RenderedKit, tree: WorkingTree) -> CheckResult:
    """No placeholder declared by the kit may remain in the files it wrote."""
    leftovers: list[str] = []
    for path in sorted({entry.path for entry in rendered.files}):
        remaining = scan_placeholders(tree.read(path) or "") & kit.placeholders
        leftovers.extend(f"{path}: {{{{{name}}}}}" for name in sorted(remaining))

    if leftovers:
        return CheckResult(criterion=PLACEHOLDER_CHECK, passed=False, detail="; ".join(leftovers))
    return CheckResult(criterion=PLACEHOLDER_CHECK, passed=True)


def verify_kit(
    kit: Kit,
    rendered: RenderedKit,
    tree: WorkingTree,
    project_dir: Path | None,
    *,
    probe: HttpProbe,
    time: Time,
    options: VerifyOptions,
) -> list[CheckResult]:
    """Run every criterion of a committed kit and return all results."""
    results = [check_placeholders(kit, rendered, tree)]
    for criterion in kit.verification:
        result = check_criterion(
            criterion,
            rendered.values,
            tree,
            project_dir,
            probe=probe,
            time=time,
            options=options,
        )
        logger.debug("Verify %s: %s -> %s", kit.id, criterion.text, result.passed)
        results.append(result)
    return results
