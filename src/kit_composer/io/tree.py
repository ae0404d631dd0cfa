"""Working tree persistence.

The generated project on disk is the working tree. Ownership information lives
in a ledger file inside the project so that re-running a plan can tell which
kit contributed what:

    .kit-composer/ledger.toml

    version = "1"

    [kits]
    foundation-auth = 1

    [files."src/routes.ts"]
    policy = "appendable"
    owners = ["foundation-auth", "stripe-checkout"]

    [[patches]]
    kit_id = "stripe-checkout"
    path = "src/app.ts"
    anchor = "// ROUTES_INSERT"
"""

import errno
import logging
import os
import tempfile
import tomllib
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath
from typing import Any

import tomli_w

from kit_composer.models.kit import OwnershipPolicy
from kit_composer.models.tree import AppliedPatch, TrackedFile, WorkingTree

logger = logging.getLogger(__name__)

LEDGER_DIR = ".kit-composer"
LEDGER_FILE = "ledger.toml"
LEDGER_VERSION = "1"
MAX_WRITE_WORKERS = 8


def ledger_path(project_dir: Path) -> Path:
    return project_dir / LEDGER_DIR / LEDGER_FILE


def load_working_tree(project_dir: Path) -> WorkingTree:
    """Load the tracked part of a project into a WorkingTree.

    Returns an empty tree if the project has no ledger yet. Tracked files that
    were deleted from disk since the last run are dropped from the tree.

    Raises:
        ValueError: If the ledger is malformed
    """
    path = ledger_path(project_dir)
    if not path.exists():
        return WorkingTree.empty()

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Malformed ledger at {path}: {e}") from None

    try:
        return _parse_ledger(project_dir, data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ValueError(f"Malformed ledger at {path}: {type(e).__name__}: {e}") from None


def _parse_ledger(project_dir: Path, data: dict[str, Any]) -> WorkingTree:
    files: dict[str, TrackedFile] = {}
    for rel_path, entry in data.get("files", {}).items():
        file_path = project_dir / rel_path
        if not file_path.is_file():
            logger.debug("Tracked file %s no longer exists; dropping from tree", rel_path)
            continue
        files[rel_path] = TrackedFile(
            content=file_path.read_text(encoding="utf-8"),
            policy=OwnershipPolicy(entry["policy"]),
            owners=tuple(entry.get("owners", [])),
        )

    patches = frozenset(
        AppliedPatch(kit_id=p["kit_id"], path=p["path"], anchor=p["anchor"])
        for p in data.get("patches", [])
        if p["path"] in files
    )
    applied = {kit_id: int(version) for kit_id, version in data.get("kits", {}).items()}
    return WorkingTree(files=files, patches=patches, applied_kits=applied)


def with_untracked_files(
    tree: WorkingTree, project_dir: Path | None, paths: Iterable[str]
) -> WorkingTree:
    """Add untracked files that already exist at the given paths to the tree.

    Those files keep policy None and no owners, so an exclusive claim on them
    conflicts while appends and patches may build on them. Files sitting where
    one of the paths needs a parent directory are added too, so the merge can
    report them instead of the write failing halfway.
    """
    if project_dir is None:
        return tree

    candidates: list[str] = []
    for rel_path in paths:
        candidates.append(rel_path)
        candidates.extend(str(parent) for parent in PurePosixPath(rel_path).parents if parent.parts)

    found: dict[str, TrackedFile] = {}
    for rel_path in candidates:
        if rel_path in tree or rel_path in found:
            continue
        file_path = project_dir / rel_path
        if file_path.is_file():
            found[rel_path] = TrackedFile(content=file_path.read_text(encoding="utf-8"))

    if not found:
        return tree
    return tree.with_files(found, frozenset())


def save_ledger(project_dir: Path, tree: WorkingTree) -> None:
    """Write the ownership ledger for every kit-tracked path."""
    files = {
        rel_path: {"policy": tracked.policy.value, "owners": list(tracked.owners)}
        for rel_path, tracked in sorted(tree.files.items())
        if tracked.policy is not None
    }
    data = {
        "version": LEDGER_VERSION,
        "kits": dict(sorted(tree.applied_kits.items())),
        "files": files,
        "patches": [
            {"kit_id": p.kit_id, "path": p.path, "anchor": p.anchor} for p in sorted(tree.patches)
        ],
    }
    _write_atomic(ledger_path(project_dir), tomli_w.dumps(data))


def _write_atomic(target: Path, content: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_name, target)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _make_parents(project_dir: Path, rel_path: str, created: list[Path]) -> None:
    current = project_dir
    for part in PurePosixPath(rel_path).parent.parts:
        current = current / part
        if not current.is_dir():
            # raises FileExistsError when a file sits where the directory should go
            current.mkdir()
            created.append(current)


def _write_temp(target: Path, content: str) -> Path:
    if target.is_dir():
        raise IsADirectoryError(errno.EISDIR, "Is a directory", str(target))
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return Path(tmp_name)


def commit_tree(project_dir: Path, before: WorkingTree, after: WorkingTree) -> list[str]:
    """Write every path that changed between two trees, then the ledger.

    Every file is first written to a temp file beside its target, in parallel.
    Targets are only replaced once all temp files exist, so a failed write
    leaves the project as it was.

    Returns:
        Sorted list of relative paths that were written

    Raises:
        OSError: If any file could not be written; nothing is replaced then
    """
    changed = before.changed_paths(after)
    if changed:
        project_dir.mkdir(parents=True, exist_ok=True)
        created: list[Path] = []
        temps: dict[str, Path] = {}
        try:
            for rel_path in changed:
                _make_parents(project_dir, rel_path, created)
            workers = min(MAX_WRITE_WORKERS, len(changed))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    rel_path: pool.submit(
                        _write_temp, project_dir / rel_path, after.files[rel_path].content
                    )
                    for rel_path in changed
                }
                errors = []
                for rel_path, future in futures.items():
                    try:
                        temps[rel_path] = future.result()
                    except OSError as e:
                        errors.append(e)
                if errors:
                    raise errors[0]
        except OSError:
            for tmp in temps.values():
                tmp.unlink(missing_ok=True)
            for directory in reversed(created):
                directory.rmdir()
            raise

        for rel_path in changed:
            os.replace(temps[rel_path], project_dir / rel_path)

    save_ledger(project_dir, after)
    logger.debug("Committed %d file(s) to %s", len(changed), project_dir)
    return changed
