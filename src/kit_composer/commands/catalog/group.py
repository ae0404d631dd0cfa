"""Catalog commands group."""

import click

from kit_composer.commands.catalog.check import check
from kit_composer.commands.catalog.list import list_kits, ls
from kit_composer.commands.catalog.show import show


@click.group("catalog")
def catalog_group() -> None:
    """Inspect and validate the kit catalog."""


catalog_group.add_command(list_kits)
catalog_group.add_command(ls)
catalog_group.add_command(show)
catalog_group.add_command(check)
