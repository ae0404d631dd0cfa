"""Working tree models.

A WorkingTree is a snapshot of the generated project: file contents plus the
ownership ledger for every path a kit has touched. The merge engine never
mutates a tree in place; it returns a new one, which is what makes per-kit
application all-or-nothing.
"""

from dataclasses import dataclass, field, replace

from kit_composer.models.kit import OwnershipPolicy


@dataclass(frozen=True)
class TrackedFile:
    """Content of one path and who owns it.

    policy is None for files that exist on disk but were never written by a kit.
    owners lists contributing kits in application order.
    """

    content: str
    policy: OwnershipPolicy | None = None
    owners: tuple[str, ...] = ()


@dataclass(frozen=True, order=True)
class AppliedPatch:
    """Ledger record of one anchor-based insertion."""

    kit_id: str
    path: str
    anchor: str


@dataclass(frozen=True)
class WorkingTree:
    """Immutable snapshot of project files and their ownership."""

    files: dict[str, TrackedFile] = field(default_factory=dict)
    patches: frozenset[AppliedPatch] = frozenset()
    applied_kits: dict[str, int] = field(default_factory=dict)

    @staticmethod
    def empty() -> "WorkingTree":
        return WorkingTree(files={}, patches=frozenset(), applied_kits={})

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def get(self, path: str) -> TrackedFile | None:
        return self.files.get(path)

    def read(self, path: str) -> str | None:
        tracked = self.files.get(path)
        if tracked is None:
            return None
        return tracked.content

    def with_files(
        self,
        files: dict[str, TrackedFile],
        patches: frozenset[AppliedPatch],
    ) -> "WorkingTree":
        """Return a new tree with files replaced or added and patches recorded."""
        return replace(
            self,
            files={**self.files, **files},
            patches=self.patches | patches,
        )

    def with_applied_kit(self, kit_id: str, version: int) -> "WorkingTree":
        return replace(self, applied_kits={**self.applied_kits, kit_id: version})

    def changed_paths(self, other: "WorkingTree") -> list[str]:
        """Paths whose content differs in other (or that are new in other)."""
        changed = []
        for path, tracked in other.files.items():
            mine = self.files.get(path)
            if mine is None or mine.content != tracked.content:
                changed.append(path)
        return sorted(changed)
