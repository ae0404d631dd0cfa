"""Tests for working tree persistence and the ownership ledger."""

import tomllib
from pathlib import Path

import pytest

from kit_composer.io.tree import (
    commit_tree,
    ledger_path,
    load_working_tree,
    save_ledger,
    with_untracked_files,
)
from kit_composer.models.kit import OwnershipPolicy
from kit_composer.models.tree import AppliedPatch, TrackedFile, WorkingTree

EXCLUSIVE = OwnershipPolicy.EXCLUSIVE
APPENDABLE = OwnershipPolicy.APPENDABLE


def _committed_tree() -> WorkingTree:
    tree = WorkingTree.empty().with_files(
        {
            "src/auth.ts": TrackedFile("auth\n", EXCLUSIVE, ("foundation-auth",)),
            "src/routes.ts": TrackedFile(
                "a\nb\n", APPENDABLE, ("foundation-auth", "stripe-checkout")
            ),
        },
        frozenset({AppliedPatch("stripe-checkout", "src/auth.ts", "// HOOK")}),
    )
    return tree.with_applied_kit("foundation-auth", 1).with_applied_kit("stripe-checkout", 2)


def test_missing_ledger_is_empty_tree(project_dir: Path) -> None:
    assert load_working_tree(project_dir) == WorkingTree.empty()


def test_commit_then_load_restores_tree(project_dir: Path) -> None:
    tree = _committed_tree()

    written = commit_tree(project_dir, WorkingTree.empty(), tree)

    assert written == ["src/auth.ts", "src/routes.ts"]
    assert (project_dir / "src" / "routes.ts").read_text(encoding="utf-8") == "a\nb\n"
    assert load_working_tree(project_dir) == tree


def test_commit_writes_only_changed_paths(project_dir: Path) -> None:
    before = _committed_tree()
    commit_tree(project_dir, WorkingTree.empty(), before)
    after = before.with_files(
        {"src/auth.ts": TrackedFile("auth v2\n", EXCLUSIVE, ("foundation-auth",))}, frozenset()
    )

    written = commit_tree(project_dir, before, after)

    assert written == ["src/auth.ts"]


def test_ledger_layout(project_dir: Path) -> None:
    save_ledger(project_dir, _committed_tree())

    data = tomllib.loads(ledger_path(project_dir).read_text(encoding="utf-8"))

    assert data["version"] == "1"
    assert data["kits"] == {"foundation-auth": 1, "stripe-checkout": 2}
    assert data["files"]["src/routes.ts"] == {
        "policy": "appendable",
        "owners": ["foundation-auth", "stripe-checkout"],
    }
    assert data["patches"] == [
        {"kit_id": "stripe-checkout", "path": "src/auth.ts", "anchor": "// HOOK"}
    ]


def test_untracked_files_are_not_ledgered(project_dir: Path) -> None:
    tree = WorkingTree.empty().with_files({"README.md": TrackedFile("mine\n")}, frozenset())

    save_ledger(project_dir, tree)

    data = tomllib.loads(ledger_path(project_dir).read_text(encoding="utf-8"))
    assert data["files"] == {}


def test_deleted_tracked_file_is_dropped(project_dir: Path) -> None:
    commit_tree(project_dir, WorkingTree.empty(), _committed_tree())
    (project_dir / "src" / "auth.ts").unlink()

    tree = load_working_tree(project_dir)

    assert "src/auth.ts" not in tree
    assert tree.patches == frozenset()
    assert tree.read("src/routes.ts") == "a\nb\n"


def test_load_reads_current_disk_content(project_dir: Path) -> None:
    commit_tree(project_dir, WorkingTree.empty(), _committed_tree())
    (project_dir / "src" / "auth.ts").write_text("edited by hand\n", encoding="utf-8")

    tree = load_working_tree(project_dir)

    assert tree.read("src/auth.ts") == "edited by hand\n"


def test_malformed_ledger_raises(project_dir: Path) -> None:
    path = ledger_path(project_dir)
    path.parent.mkdir(parents=True)
    path.write_text("files = [unterminated\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Malformed ledger"):
        load_working_tree(project_dir)


@pytest.mark.parametrize(
    "ledger",
    [
        '[files."app.ts"]\nowners = ["web"]\n',
        '[files."app.ts"]\npolicy = "shared"\n',
        '[files."app.ts"]\npolicy = "exclusive"\n\n[[patches]]\nkit_id = "web"\npath = "app.ts"\n',
        '[kits]\nweb = "one"\n',
        'files = "app.ts"\n',
    ],
)
def test_hand_edited_ledger_raises_value_error(project_dir: Path, ledger: str) -> None:
    (project_dir / "app.ts").write_text("app\n", encoding="utf-8")
    path = ledger_path(project_dir)
    path.parent.mkdir(parents=True)
    path.write_text(ledger, encoding="utf-8")

    with pytest.raises(ValueError, match="Malformed ledger at"):
        load_working_tree(project_dir)


def test_failed_commit_leaves_nothing_behind(project_dir: Path) -> None:
    (project_dir / "src").mkdir()
    (project_dir / "src" / "main.ts").write_text("main\n", encoding="utf-8")
    after = WorkingTree.empty().with_files(
        {
            "lib/deep/a.ts": TrackedFile("a\n", EXCLUSIVE, ("web",)),
            "notes.md": TrackedFile("notes\n", EXCLUSIVE, ("web",)),
            "src": TrackedFile("oops\n", EXCLUSIVE, ("web",)),
        },
        frozenset(),
    )

    with pytest.raises(IsADirectoryError):
        commit_tree(project_dir, WorkingTree.empty(), after)

    remaining = sorted(str(p.relative_to(project_dir)) for p in project_dir.rglob("*"))
    assert remaining == ["src", "src/main.ts"]


def test_commit_into_file_where_directory_is_needed_fails(project_dir: Path) -> None:
    (project_dir / "lib").write_text("mine\n", encoding="utf-8")
    after = WorkingTree.empty().with_files(
        {"lib/x.ts": TrackedFile("x\n", EXCLUSIVE, ("web",))}, frozenset()
    )

    with pytest.raises(OSError):
        commit_tree(project_dir, WorkingTree.empty(), after)

    assert (project_dir / "lib").read_text(encoding="utf-8") == "mine\n"
    assert not ledger_path(project_dir).exists()


def test_with_untracked_files_adds_files_in_place_of_directories(project_dir: Path) -> None:
    (project_dir / "lib").write_text("mine\n", encoding="utf-8")

    tree = with_untracked_files(WorkingTree.empty(), project_dir, ["lib/x.ts", "src/a.ts"])

    assert tree.get("lib") == TrackedFile("mine\n")
    assert list(tree.files) == ["lib"]


def test_with_untracked_files_reads_existing_paths(project_dir: Path) -> None:
    (project_dir / "README.md").write_text("mine\n", encoding="utf-8")

    tree = with_untracked_files(WorkingTree.empty(), project_dir, ["README.md", "missing.txt"])

    assert tree.get("README.md") == TrackedFile("mine\n")
    assert "missing.txt" not in tree


def test_with_untracked_files_keeps_tracked_entries(project_dir: Path) -> None:
    tree = _committed_tree()
    commit_tree(project_dir, WorkingTree.empty(), tree)

    same = with_untracked_files(tree, project_dir, ["src/auth.ts"])

    assert same is tree


def test_with_untracked_files_without_project_dir() -> None:
    tree = WorkingTree.empty()

    assert with_untracked_files(tree, None, ["README.md"]) is tree
