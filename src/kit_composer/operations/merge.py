"""Merging a kit's rendered files into a working tree.

merge_kit is pure: it returns a new WorkingTree and never touches the input,
so a kit whose file set does not merge cleanly leaves no trace.
"""

import logging
from collections.abc import Sequence
from pathlib import PurePosixPath

from kit_composer.errors import (
    FileOwnershipConflictError,
    MalformedManifestError,
    ManifestProblem,
    MergeConflictError,
    MissingAnchor,
    OwnershipClaim,
)
from kit_composer.io.manifest import validate_relative_path
from kit_composer.models.kit import FileEntry, OwnershipPolicy, PatchPosition
from kit_composer.models.tree import AppliedPatch, TrackedFile, WorkingTree

logger = logging.getLogger(__name__)

# exclusive files first so a kit can patch or append to files it creates itself
_POLICY_ORDER = {
    OwnershipPolicy.EXCLUSIVE: 0,
    OwnershipPolicy.APPENDABLE: 1,
    OwnershipPolicy.PATCH: 2,
}


def append_content(existing: str, addition: str) -> str:
    """Concatenate, keeping each contribution on its own lines."""
    if existing and not existing.endswith("\n"):
        existing += "\n"
    return existing + addition


def insert_at_anchor(content: str, anchor: str, insertion: str, position: PatchPosition) -> str:
    """Insert text on the line after (or before) the first line containing anchor.

    Raises:
        ValueError: If anchor does not occur in content
    """
    index = content.find(anchor)
    if index == -1:
        raise ValueError(f"Anchor not found: {anchor!r}")

    if not insertion.endswith("\n"):
        insertion += "\n"

    line_start = content.rfind("\n", 0, index) + 1
    if position == "before":
        return content[:line_start] + insertion + content[line_start:]

    line_end = content.find("\n", index)
    if line_end == -1:
        return content + "\n" + insertion
    return content[: line_end + 1] + insertion + content[line_end + 1 :]


def _check_paths(kit_id: str, files: Sequence[FileEntry]) -> None:
    problems = []
    for entry in files:
        error = validate_relative_path(entry.path)
        if error is not None:
            problems.append(ManifestProblem(None, f"{kit_id}: {error}"))
    if problems:
        raise MalformedManifestError(problems)


def _path_clashes(
    tree: WorkingTree, kit_id: str, staged: dict[str, TrackedFile]
) -> list[OwnershipClaim]:
    """Find new paths that need an existing file to be a directory, or the reverse."""
    clashes = []
    occupied = {**tree.files, **staged}
    for path in sorted(p for p in staged if p not in tree):
        for parent in PurePosixPath(path).parents:
            blocker = occupied.get(str(parent)) if parent.parts else None
            if blocker is not None:
                clashes.append(OwnershipClaim(path, kit_id, blocker.owners, str(parent)))
        prefix = path + "/"
        for other in sorted(tree.files):
            if other.startswith(prefix):
                clashes.append(OwnershipClaim(path, kit_id, tree.files[other].owners, other))
    return clashes


def merge_kit(tree: WorkingTree, kit_id: str, files: Sequence[FileEntry]) -> WorkingTree:
    """Merge one kit's rendered file set into a tree.

    Args:
        tree: Current working tree (including any untracked files at the kit's paths)
        kit_id: Kit being applied
        files: Rendered file entries

    Returns:
        New WorkingTree with the kit's changes staged

    Raises:
        FileOwnershipConflictError: Listing every path whose ownership conflicts
        MergeConflictError: Listing every patch whose anchor is absent
        MalformedManifestError: If a substituted path escapes the project
    """
    _check_paths(kit_id, files)

    staged: dict[str, TrackedFile] = {}
    patches: set[AppliedPatch] = set()
    claims: list[OwnershipClaim] = []
    missing: list[MissingAnchor] = []
    appended_now: set[str] = set()

    def current(path: str) -> TrackedFile | None:
        if path in staged:
            return staged[path]
        return tree.get(path)

    ordered = sorted(files, key=lambda entry: _POLICY_ORDER[entry.policy])
    for entry in ordered:
        existing = current(entry.path)

        if entry.policy is OwnershipPolicy.EXCLUSIVE:
            if existing is None:
                staged[entry.path] = TrackedFile(
                    content=entry.content, policy=OwnershipPolicy.EXCLUSIVE, owners=(kit_id,)
                )
            elif existing.policy is OwnershipPolicy.EXCLUSIVE and existing.owners == (kit_id,):
                logger.debug("%s already owns %s; keeping current content", kit_id, entry.path)
            else:
                claims.append(OwnershipClaim(entry.path, kit_id, existing.owners))

        elif entry.policy is OwnershipPolicy.APPENDABLE:
            if existing is None:
                staged[entry.path] = TrackedFile(
                    content=entry.content, policy=OwnershipPolicy.APPENDABLE, owners=(kit_id,)
                )
                appended_now.add(entry.path)
            elif existing.policy is OwnershipPolicy.EXCLUSIVE:
                claims.append(OwnershipClaim(entry.path, kit_id, existing.owners))
            elif kit_id in existing.owners and entry.path not in appended_now:
                logger.debug("%s already contributed to %s; skipping", kit_id, entry.path)
            else:
                owners = existing.owners
                if kit_id not in owners:
                    owners = (*owners, kit_id)
                staged[entry.path] = TrackedFile(
                    content=append_content(existing.content, entry.content),
                    policy=OwnershipPolicy.APPENDABLE,
                    owners=owners,
                )
                appended_now.add(entry.path)

        else:
            if entry.anchor is None:
                raise ValueError(f"{kit_id}: patch entry for {entry.path} has no anchor")
            record = AppliedPatch(kit_id=kit_id, path=entry.path, anchor=entry.anchor)
            if record in tree.patches:
                logger.debug("%s already patched %s; skipping", kit_id, entry.path)
                continue
            if existing is None or entry.anchor not in existing.content:
                missing.append(MissingAnchor(path=entry.path, anchor=entry.anchor))
                continue
            staged[entry.path] = TrackedFile(
                content=insert_at_anchor(
                    existing.content, entry.anchor, entry.content, entry.position
                ),
                policy=existing.policy or OwnershipPolicy.PATCH,
                owners=existing.owners,
            )
            patches.add(record)

    claims.extend(_path_clashes(tree, kit_id, staged))
    if claims:
        raise FileOwnershipConflictError(kit_id, claims)
    if missing:
        raise MergeConflictError(kit_id, missing)

    return tree.with_files(staged, frozenset(patches))
