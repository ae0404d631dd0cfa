"""CLI tests for the plan command."""

from pathlib import Path

from click.testing import CliRunner

from kit_composer.cli import cli
from tests.test_utils.kits import write_checkout_catalog, write_kit


def _plan(catalog_dir: Path, *args: str):
    return CliRunner().invoke(cli, ["plan", *args, "--catalog", str(catalog_dir)])


def test_plan_prints_order(catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)

    result = _plan(catalog_dir, "stripe-checkout")

    assert result.exit_code == 0, result.output
    assert "foundation-auth@1\nstripe-checkout@1\n" in result.stdout
    assert "2 kit(s) in plan" in result.output
    assert "Auto-including hard dependency 'foundation-auth'" in result.output


def test_plan_strict_exits_1(catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)

    result = _plan(catalog_dir, "stripe-checkout", "--strict")

    assert result.exit_code == 1
    assert "Unsatisfied hard dependencies" in result.output


def test_plan_cycle_exits_1(catalog_dir: Path) -> None:
    write_kit(catalog_dir, "kit-a", requires=["kit-b"])
    write_kit(catalog_dir, "kit-b", requires=["kit-a"])

    result = _plan(catalog_dir, "kit-a", "kit-b")

    assert result.exit_code == 1
    assert "Cyclic dependency: kit-a -> kit-b -> kit-a" in result.output


def test_plan_pinned_version(catalog_dir: Path) -> None:
    write_kit(catalog_dir, "stripe-checkout", version=1)
    write_kit(catalog_dir, "stripe-checkout", version=2)

    result = _plan(catalog_dir, "stripe-checkout@1")

    assert result.exit_code == 0, result.output
    assert "stripe-checkout@1" in result.stdout


def test_plan_invalid_pin_exits_1(catalog_dir: Path) -> None:
    write_kit(catalog_dir, "stripe-checkout")

    result = _plan(catalog_dir, "stripe-checkout@latest")

    assert result.exit_code == 1
    assert "Invalid kit version" in result.output
