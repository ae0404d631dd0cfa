"""Catalog loading.

Loads every kit document under a directory, then classifies each kit's
prerequisite bullets against the ids and tags of the whole catalog. Only exact
id or tag matches become graph edges; anything else is kept as a note.
"""

import logging
import re
from dataclasses import replace
from pathlib import Path

from kit_composer.errors import DuplicateIdError, MalformedManifestError, ManifestProblem
from kit_composer.io.manifest import ParsedKit, load_kit_document
from kit_composer.models.catalog import Catalog
from kit_composer.models.kit import Kit, SoftDependency

logger = logging.getLogger(__name__)

MANIFEST_GLOB = "*.md"
IGNORED_FILENAMES = frozenset({"readme.md", "changelog.md"})

_CODE_SPAN = re.compile(r"`([^`]+)`")
_MARKUP = re.compile(r"[*_`]")
_TRAILING = re.compile(r"[\s.,;:]+$")


def _candidates(item: str) -> list[str]:
    """Whole normalized bullet text first, then any inline code spans."""
    normalized = _TRAILING.sub("", _MARKUP.sub("", item)).strip()
    candidates = [normalized] if normalized else []
    for span in _CODE_SPAN.findall(item):
        stripped = span.strip()
        if stripped and stripped not in candidates:
            candidates.append(stripped)
    return candidates


def classify_prerequisites(parsed: ParsedKit, kit_ids: set[str], tags: set[str]) -> Kit:
    """Turn raw prerequisite bullets into hard dependencies, soft hints and notes.

    Under Prerequisites/Requires a kit-id match is a hard dependency and a tag
    match is a soft tag hint. Under Compatible With both become soft hints.
    """
    hard: set[str] = set()
    soft: set[SoftDependency] = set()
    notes: list[str] = []

    for item in parsed.requires:
        candidates = _candidates(item)
        kit_match = next((c for c in candidates if c in kit_ids and c != parsed.kit.id), None)
        if kit_match is not None:
            hard.add(kit_match)
            continue
        tag_match = next((c for c in candidates if c in tags), None)
        if tag_match is not None:
            soft.add(SoftDependency(kind="tag", value=tag_match))
            continue
        notes.append(item)

    for item in parsed.compatible_with:
        candidates = _candidates(item)
        kit_match = next((c for c in candidates if c in kit_ids and c != parsed.kit.id), None)
        if kit_match is not None:
            soft.add(SoftDependency(kind="kit", value=kit_match))
            continue
        tag_match = next((c for c in candidates if c in tags), None)
        if tag_match is not None:
            soft.add(SoftDependency(kind="tag", value=tag_match))
            continue
        notes.append(item)

    return replace(
        parsed.kit,
        hard_dependencies=frozenset(hard),
        soft_dependencies=frozenset(soft),
        notes=tuple(notes),
    )


def build_catalog(parsed_kits: list[ParsedKit]) -> Catalog:
    """Check (id, version) uniqueness and classify prerequisites.

    Raises:
        DuplicateIdError: Listing every (id, version) declared more than once
    """
    seen: dict[tuple[str, int], list[Path]] = {}
    for parsed in parsed_kits:
        key = (parsed.kit.id, parsed.kit.version)
        source = parsed.kit.source_path if parsed.kit.source_path is not None else Path("<memory>")
        seen.setdefault(key, []).append(source)

    duplicates = {key: paths for key, paths in seen.items() if len(paths) > 1}
    if duplicates:
        raise DuplicateIdError(duplicates)

    kit_ids = {parsed.kit.id for parsed in parsed_kits}
    tags = {tag for parsed in parsed_kits for tag in parsed.kit.tags}
    kits = [classify_prerequisites(parsed, kit_ids, tags) for parsed in parsed_kits]
    return Catalog(kits)


def load_catalog(directory: Path) -> Catalog:
    """Load every kit document under directory into a catalog snapshot.

    Args:
        directory: Directory containing kit manifests (searched recursively)

    Returns:
        Catalog with prerequisites classified

    Raises:
        FileNotFoundError: If directory does not exist
        MalformedManifestError: Listing problems from every malformed document
        DuplicateIdError: If an (id, version) pair is declared twice
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"Catalog directory not found: {directory}")

    parsed_kits: list[ParsedKit] = []
    problems: list[ManifestProblem] = []

    for path in sorted(directory.rglob(MANIFEST_GLOB)):
        if not path.is_file() or path.name.lower() in IGNORED_FILENAMES:
            continue
        try:
            parsed_kits.append(load_kit_document(path))
        except MalformedManifestError as e:
            problems.extend(e.problems)

    if problems:
        raise MalformedManifestError(problems)

    logger.debug("Loaded %d kit document(s) from %s", len(parsed_kits), directory)
    return build_catalog(parsed_kits)
