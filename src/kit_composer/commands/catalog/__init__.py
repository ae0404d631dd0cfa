"""Catalog commands for inspecting kit manifests."""

from kit_composer.commands.catalog.group import catalog_group

__all__ = ["catalog_group"]
