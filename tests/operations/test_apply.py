"""Tests for running apply plans end to end against a tmp project."""

from pathlib import Path

import pytest

from kit_composer.errors import (
    CommitFailedError,
    FileOwnershipConflictError,
    MergeConflictError,
    UnknownKitError,
    UnresolvedPlaceholderError,
    VerifyFailed,
)
from kit_composer.integrations.http_probe.fake import FakeHttpProbe
from kit_composer.io.tree import ledger_path, load_working_tree
from kit_composer.models.catalog import KitRequest
from kit_composer.models.kit import OwnershipPolicy
from kit_composer.models.plan import KitOutcome, PlanState
from kit_composer.operations.apply import run_plan
from tests.test_utils.context_builders import build_test_context
from tests.test_utils.kits import (
    CHECKOUT_APP_TS,
    KitFile,
    write_checkout_catalog,
    write_kit,
)


def _requests(*kit_ids: str) -> list[KitRequest]:
    return [KitRequest(kit_id) for kit_id in kit_ids]


def _read(project_dir: Path, rel_path: str) -> str:
    return (project_dir / rel_path).read_text(encoding="utf-8")


def _snapshot(project_dir: Path) -> dict[str, bytes]:
    return {
        str(path.relative_to(project_dir)): path.read_bytes()
        for path in sorted(project_dir.rglob("*"))
        if path.is_file()
    }


def test_checkout_scenario(project_dir: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)
    ctx = build_test_context(project_dir, catalog_dir)

    report = run_plan(ctx, _requests("stripe-checkout"))

    assert report.state is PlanState.DONE
    assert report.transitions == [
        PlanState.PENDING,
        PlanState.RESOLVING,
        PlanState.READY,
        PlanState.APPLYING,
        PlanState.APPLYING,
        PlanState.DONE,
    ]
    assert report.plan is not None
    assert report.plan.kit_ids == ["foundation-auth", "stripe-checkout"]
    assert any("Auto-including" in warning for warning in report.warnings)
    assert [r.outcome for r in report.results] == [KitOutcome.APPLIED, KitOutcome.APPLIED]

    assert _read(project_dir, "src/routes.ts") == (
        "router.get('/login');\nrouter.post('/checkout');\n"
    )
    assert _read(project_dir, "src/app.ts") == CHECKOUT_APP_TS.replace(
        "// ROUTES_INSERT\n", "// ROUTES_INSERT\napp.use(checkout);\n"
    )
    assert _read(project_dir, "src/checkout.ts") == "export const secret = 'fake-secret-1';\n"


def test_ledger_records_owners_and_patches(project_dir: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)

    run_plan(build_test_context(project_dir, catalog_dir), _requests("stripe-checkout"))

    tree = load_working_tree(project_dir)
    assert tree.applied_kits == {"foundation-auth": 1, "stripe-checkout": 1}
    routes = tree.get("src/routes.ts")
    assert routes is not None
    assert routes.policy is OwnershipPolicy.APPENDABLE
    assert routes.owners == ("foundation-auth", "stripe-checkout")
    assert {(p.kit_id, p.path) for p in tree.patches} == {("stripe-checkout", "src/app.ts")}


def test_rerun_is_byte_identical(project_dir: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)
    ctx = build_test_context(project_dir, catalog_dir)
    run_plan(ctx, _requests("stripe-checkout"))
    before = _snapshot(project_dir)

    again = run_plan(ctx, _requests("stripe-checkout"))

    assert again.state is PlanState.DONE
    assert _snapshot(project_dir) == before
    assert all(result.changed_paths == () for result in again.results)


def test_fresh_trees_are_identical(tmp_path: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)
    first, second = tmp_path / "first", tmp_path / "second"
    first.mkdir()
    second.mkdir()

    run_plan(build_test_context(first, catalog_dir), _requests("stripe-checkout"))
    run_plan(build_test_context(second, catalog_dir), _requests("stripe-checkout"))

    assert _snapshot(first) == _snapshot(second)


def test_unknown_kit_blocks_plan(project_dir: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)

    report = run_plan(build_test_context(project_dir, catalog_dir), _requests("nope"))

    assert report.state is PlanState.BLOCKED
    assert report.transitions == [PlanState.PENDING, PlanState.RESOLVING, PlanState.BLOCKED]
    assert isinstance(report.error, UnknownKitError)
    assert report.results == []
    assert _snapshot(project_dir) == {}


def test_strict_mode_blocks_on_missing_dependency(project_dir: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)
    ctx = build_test_context(project_dir, catalog_dir)

    report = run_plan(ctx, _requests("stripe-checkout"), strict=True)

    assert report.state is PlanState.BLOCKED
    assert report.error is not None
    assert "foundation-auth" in str(report.error)
    assert _snapshot(project_dir) == {}


def test_unresolved_placeholder_blocks_before_any_write(
    project_dir: Path, catalog_dir: Path
) -> None:
    write_kit(catalog_dir, "base-kit", is_base=True, files=[KitFile("base.txt", "base")])
    write_kit(catalog_dir, "web-app", files=[KitFile("src/{{APP_NAME}}.ts", "{{API_URL}}")])

    ctx = build_test_context(project_dir, catalog_dir)

    report = run_plan(ctx, _requests("base-kit", "web-app"))

    assert report.state is PlanState.BLOCKED
    assert isinstance(report.error, UnresolvedPlaceholderError)
    assert report.error.missing == {"web-app": ["API_URL", "APP_NAME"]}
    assert not (project_dir / "base.txt").exists()


def test_user_values_fill_placeholders(project_dir: Path, catalog_dir: Path) -> None:
    write_kit(catalog_dir, "web-app", files=[KitFile("src/{{APP_NAME}}.ts", "{{API_URL}}")])
    ctx = build_test_context(
        project_dir, catalog_dir, variables={"APP_NAME": "acme", "API_URL": "https://api"}
    )

    report = run_plan(ctx, _requests("web-app"))

    assert report.state is PlanState.DONE
    assert _read(project_dir, "src/acme.ts") == "https://api\n"


def test_conflict_aborts_and_skips_remaining(project_dir: Path, catalog_dir: Path) -> None:
    write_kit(catalog_dir, "core", is_base=True, files=[KitFile("config.json", "{}")])
    write_kit(catalog_dir, "alpha", files=[KitFile("config.json", '{"alpha": true}')])
    write_kit(catalog_dir, "beta", files=[KitFile("beta.txt", "beta")])

    report = run_plan(
        build_test_context(project_dir, catalog_dir), _requests("core", "alpha", "beta")
    )

    assert report.state is PlanState.ABORTED
    assert isinstance(report.error, FileOwnershipConflictError)
    assert report.error.exit_code == 2
    assert [(r.kit_id, r.outcome) for r in report.results] == [
        ("core", KitOutcome.APPLIED),
        ("alpha", KitOutcome.CONFLICT_FAILED),
        ("beta", KitOutcome.SKIPPED),
    ]
    assert _read(project_dir, "config.json") == "{}\n"
    assert not (project_dir / "beta.txt").exists()
    assert load_working_tree(project_dir).applied_kits == {"core": 1}


def test_missing_anchor_leaves_project_untouched(project_dir: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir, with_anchor=False)

    report = run_plan(
        build_test_context(project_dir, catalog_dir),
        _requests("foundation-auth", "stripe-checkout"),
    )

    assert report.state is PlanState.ABORTED
    assert isinstance(report.error, MergeConflictError)
    assert report.outcome_of("stripe-checkout") is KitOutcome.CONFLICT_FAILED
    assert "// ROUTES_INSERT" not in _read(project_dir, "src/app.ts")
    assert "app.use(checkout)" not in _read(project_dir, "src/app.ts")
    assert _read(project_dir, "src/routes.ts") == "router.get('/login');\n"
    assert not (project_dir / "src" / "checkout.ts").exists()


def test_exclusive_claim_on_user_file_conflicts(project_dir: Path, catalog_dir: Path) -> None:
    (project_dir / "README.md").write_text("my notes\n", encoding="utf-8")
    write_kit(catalog_dir, "docs", files=[KitFile("README.md", "# Generated")])

    report = run_plan(build_test_context(project_dir, catalog_dir), _requests("docs"))

    assert isinstance(report.error, FileOwnershipConflictError)
    assert _read(project_dir, "README.md") == "my notes\n"


def test_file_in_place_of_directory_conflicts_before_any_write(
    project_dir: Path, catalog_dir: Path
) -> None:
    write_kit(catalog_dir, "alpha", files=[KitFile("lib", "alpha")])
    write_kit(
        catalog_dir,
        "beta",
        files=[KitFile("a.txt", "a"), KitFile("b.txt", "b"), KitFile("lib/x.ts", "x")],
    )

    report = run_plan(build_test_context(project_dir, catalog_dir), _requests("alpha", "beta"))

    assert report.state is PlanState.ABORTED
    assert isinstance(report.error, FileOwnershipConflictError)
    assert report.error.paths == ["lib/x.ts"]
    assert "'lib' is in the way, owned by alpha" in str(report.error)
    assert report.outcome_of("beta") is KitOutcome.CONFLICT_FAILED
    assert _read(project_dir, "lib") == "alpha\n"
    assert not (project_dir / "a.txt").exists()
    assert not (project_dir / "b.txt").exists()
    assert load_working_tree(project_dir).applied_kits == {"alpha": 1}


def test_user_file_in_place_of_directory_conflicts(project_dir: Path, catalog_dir: Path) -> None:
    (project_dir / "lib").write_text("mine\n", encoding="utf-8")
    write_kit(catalog_dir, "beta", files=[KitFile("a.txt", "a"), KitFile("lib/x.ts", "x")])

    report = run_plan(build_test_context(project_dir, catalog_dir), _requests("beta"))

    assert isinstance(report.error, FileOwnershipConflictError)
    assert "'lib' is in the way, owned by an untracked file" in str(report.error)
    assert _snapshot(project_dir) == {"lib": b"mine\n"}


def test_failed_write_aborts_without_partial_files(project_dir: Path, catalog_dir: Path) -> None:
    (project_dir / "src").mkdir()
    (project_dir / "src" / "main.ts").write_text("main\n", encoding="utf-8")
    write_kit(catalog_dir, "core", is_base=True, files=[KitFile("core.txt", "core")])
    write_kit(catalog_dir, "web", files=[KitFile("new/dir/a.txt", "a"), KitFile("src", "oops")])
    write_kit(catalog_dir, "zeta", files=[KitFile("zeta.md", "zeta")])

    report = run_plan(
        build_test_context(project_dir, catalog_dir), _requests("core", "web", "zeta")
    )

    assert report.state is PlanState.ABORTED
    assert isinstance(report.error, CommitFailedError)
    assert report.error.exit_code == 2
    assert [(r.kit_id, r.outcome) for r in report.results] == [
        ("core", KitOutcome.APPLIED),
        ("web", KitOutcome.CONFLICT_FAILED),
        ("zeta", KitOutcome.SKIPPED),
    ]
    assert not (project_dir / "new").exists()
    assert not (project_dir / "zeta.md").exists()
    assert _read(project_dir, "src/main.ts") == "main\n"
    assert sorted(p.name for p in (project_dir / "src").iterdir()) == ["main.ts"]
    assert load_working_tree(project_dir).applied_kits == {"core": 1}


def test_append_to_user_file_makes_it_tracked(
    project_dir: Path, catalog_dir: Path
) -> None:
    (project_dir / ".gitignore").write_text("node_modules/\n", encoding="utf-8")
    write_kit(catalog_dir, "env", files=[KitFile(".gitignore", ".env", policy="appendable")])

    report = run_plan(build_test_context(project_dir, catalog_dir), _requests("env"))

    assert report.state is PlanState.DONE
    assert _read(project_dir, ".gitignore") == "node_modules/\n.env\n"
    tracked = load_working_tree(project_dir).get(".gitignore")
    assert tracked is not None
    assert tracked.owners == ("env",)


def test_dry_run_writes_nothing(project_dir: Path, catalog_dir: Path) -> None:
    write_checkout_catalog(catalog_dir)
    probe = FakeHttpProbe()

    report = run_plan(
        build_test_context(project_dir, catalog_dir, http_probe=probe),
        _requests("stripe-checkout"),
        dry_run=True,
    )

    assert report.state is PlanState.DONE
    assert report.dry_run
    assert _snapshot(project_dir) == {}
    assert not ledger_path(project_dir).exists()
    assert report.results[1].changed_paths == ("src/app.ts", "src/checkout.ts", "src/routes.ts")
    assert probe.calls == []


def test_verify_failure_warns_in_default_mode(project_dir: Path, catalog_dir: Path) -> None:
    write_kit(
        catalog_dir,
        "api",
        files=[KitFile("src/api.ts", "export {}")],
        verification=["GET http://localhost:3000/health returns 200"],
    )
    probe = FakeHttpProbe({"http://localhost:3000/health": [503]})

    report = run_plan(
        build_test_context(project_dir, catalog_dir, http_probe=probe, verify_retries=0),
        _requests("api"),
    )

    assert report.state is PlanState.DONE
    assert report.outcome_of("api") is KitOutcome.VERIFY_FAILED
    assert any("api: verification failed" in warning for warning in report.warnings)
    assert (project_dir / "src" / "api.ts").exists()


def test_verify_failure_aborts_in_strict_mode(project_dir: Path, catalog_dir: Path) -> None:
    write_kit(
        catalog_dir,
        "api",
        is_base=True,
        files=[KitFile("src/api.ts", "export {}")],
        verification=["`src/missing.ts` exists"],
    )
    write_kit(catalog_dir, "web", files=[KitFile("src/web.ts", "export {}")])

    report = run_plan(
        build_test_context(project_dir, catalog_dir, strict=True), _requests("api", "web")
    )

    assert report.state is PlanState.ABORTED
    assert isinstance(report.error, VerifyFailed)
    assert report.error.exit_code == 3
    assert report.outcome_of("api") is KitOutcome.VERIFY_FAILED
    assert report.outcome_of("web") is KitOutcome.SKIPPED
    assert (project_dir / "src" / "api.ts").exists()
    assert not (project_dir / "src" / "web.ts").exists()


def test_live_http_check_passes(project_dir: Path, catalog_dir: Path) -> None:
    write_kit(
        catalog_dir,
        "api",
        files=[KitFile("src/api.ts", "export {}")],
        verification=["GET http://localhost:3000/health returns 200"],
    )
    probe = FakeHttpProbe({"http://localhost:3000/health": [200]})

    report = run_plan(
        build_test_context(project_dir, catalog_dir, http_probe=probe), _requests("api")
    )

    assert report.outcome_of("api") is KitOutcome.APPLIED
    assert probe.calls == [("http://localhost:3000/health", 10.0)]


def test_missing_catalog_raises(project_dir: Path, tmp_path: Path) -> None:
    ctx = build_test_context(project_dir, tmp_path / "nowhere")

    with pytest.raises(FileNotFoundError):
        run_plan(ctx, _requests("anything"))
