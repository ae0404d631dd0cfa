"""I/O operations for kit-composer."""

from kit_composer.io.catalog import build_catalog, load_catalog
from kit_composer.io.manifest import load_kit_document, parse_kit_document
from kit_composer.io.tree import commit_tree, load_working_tree, save_ledger

__all__ = [
    "build_catalog",
    "commit_tree",
    "load_catalog",
    "load_kit_document",
    "load_working_tree",
    "parse_kit_document",
    "save_ledger",
]
