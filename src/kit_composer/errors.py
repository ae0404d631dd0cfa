"""Error taxonomy for kit resolution and composition.

Every error carries the complete list of offending identifiers gathered in a
single pass, so a user can fix everything before re-running. Errors also carry
the CLI exit code they map to:

- 1: resolution failures (malformed, duplicate, cyclic, missing, unknown,
  invalid base ordering, unresolved placeholders)
- 2: merge conflicts (ownership, missing patch anchor, or a failed write)
- 3: verification failures
"""

from dataclasses import dataclass
from pathlib import Path


class KitComposerError(Exception):
    """Base class for all well-known kit-composer failures."""

    exit_code: int = 1


class ResolutionError(KitComposerError):
    """Failures that block a plan before any kit is applied."""

    exit_code = 1


class ConflictError(KitComposerError):
    """Failures while merging a kit's files into the working tree."""

    exit_code = 2


@dataclass(frozen=True)
class ManifestProblem:
    """A single problem found in one kit document."""

    source: Path | None
    message: str

    def __str__(self) -> str:
        if self.source is None:
            return self.message
        return f"{self.source}: {self.message}"


class MalformedManifestError(ResolutionError):
    """One or more kit documents failed schema validation."""

    def __init__(self, problems: list[ManifestProblem]) -> None:
        self.problems = problems
        lines = "\n".join(f"  - {problem}" for problem in problems)
        super().__init__(f"Malformed kit manifest(s):\n{lines}")


class DuplicateIdError(ResolutionError):
    """The same (id, version) pair appears more than once in a catalog."""

    def __init__(self, duplicates: dict[tuple[str, int], list[Path]]) -> None:
        self.duplicates = duplicates
        lines = []
        for (kit_id, version), paths in sorted(duplicates.items()):
            joined = ", ".join(str(p) for p in paths)
            lines.append(f"  - {kit_id} v{version}: {joined}")
        super().__init__("Duplicate kit id(s):\n" + "\n".join(lines))

    @property
    def kit_ids(self) -> list[str]:
        return sorted({kit_id for kit_id, _ in self.duplicates})


class InvalidBaseOrderingError(ResolutionError):
    """A base kit hard-depends on a non-base kit."""

    def __init__(self, violations: list[tuple[str, str]]) -> None:
        self.violations = violations
        lines = "\n".join(
            f"  - base kit '{base}' depends on non-base kit '{dep}'" for base, dep in violations
        )
        super().__init__(f"Invalid base ordering:\n{lines}")


class CyclicDependencyError(ResolutionError):
    """Hard dependencies form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        path = " -> ".join([*cycle, cycle[0]])
        super().__init__(f"Cyclic dependency: {path}")


class UnsatisfiedDependencyError(ResolutionError):
    """Strict mode found hard dependencies missing from the request."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "Unsatisfied hard dependencies (request them explicitly or drop --strict): "
            + ", ".join(missing)
        )


class UnknownKitError(ResolutionError):
    """A requested kit id or pinned version is not in the catalog."""

    def __init__(self, unknown: list[str]) -> None:
        self.unknown = unknown
        super().__init__("Unknown kit(s): " + ", ".join(unknown))


class UnresolvedPlaceholderError(ResolutionError):
    """Kits reference placeholders with no value, default or generator.

    missing maps kit id to its missing tokens; each token appears once per kit.
    """

    def __init__(self, missing: dict[str, list[str]]) -> None:
        self.missing = missing
        lines = []
        for kit_id, tokens in sorted(missing.items()):
            names = ", ".join("{{" + token + "}}" for token in tokens)
            lines.append(f"  - {kit_id}: {names}")
        super().__init__(
            "Unresolved placeholder(s):\n" + "\n".join(lines) + "\nSupply them with --var KEY=VALUE"
        )

    @property
    def tokens(self) -> list[str]:
        return sorted({token for tokens in self.missing.values() for token in tokens})

    @property
    def kit_ids(self) -> list[str]:
        return sorted(self.missing)


@dataclass(frozen=True)
class OwnershipClaim:
    """A path that a kit tried to claim while another owner held it."""

    path: str
    claimant: str
    owners: tuple[str, ...]
    # set when the clash is with a file at a parent or child path
    blocked_by: str | None = None

    def __str__(self) -> str:
        held_by = ", ".join(self.owners) if self.owners else "an untracked file"
        if self.blocked_by is not None:
            return (
                f"'{self.path}' claimed by '{self.claimant}' but"
                f" '{self.blocked_by}' is in the way, owned by {held_by}"
            )
        return f"'{self.path}' claimed by '{self.claimant}' but owned by {held_by}"


class FileOwnershipConflictError(ConflictError):
    """A kit claimed paths whose existing ownership cannot be reconciled."""

    def __init__(self, kit_id: str, claims: list[OwnershipClaim]) -> None:
        self.kit_id = kit_id
        self.claims = claims
        lines = "\n".join(f"  - {claim}" for claim in claims)
        super().__init__(f"File ownership conflict for kit '{kit_id}':\n{lines}")

    @property
    def paths(self) -> list[str]:
        return [claim.path for claim in self.claims]


@dataclass(frozen=True)
class MissingAnchor:
    """A patch whose anchor is absent from the target file."""

    path: str
    anchor: str


class MergeConflictError(ConflictError):
    """A patch kit's anchor could not be found."""

    def __init__(self, kit_id: str, missing: list[MissingAnchor]) -> None:
        self.kit_id = kit_id
        self.missing = missing
        lines = "\n".join(f"  - {m.path}: anchor {m.anchor!r} not found" for m in missing)
        super().__init__(f"Merge conflict for kit '{kit_id}':\n{lines}")


class CommitFailedError(ConflictError):
    """A kit's merged files could not be written to the project."""

    def __init__(self, kit_id: str, reason: str) -> None:
        self.kit_id = kit_id
        self.reason = reason
        super().__init__(f"Could not write files for kit '{kit_id}': {reason}")


class VerifyFailed(KitComposerError):
    """A kit's verification criterion failed in strict mode."""

    exit_code = 3

    def __init__(self, kit_id: str, criteria: list[str]) -> None:
        self.kit_id = kit_id
        self.criteria = criteria
        lines = "\n".join(f"  - {criterion}" for criterion in criteria)
        super().__init__(f"Verification failed for kit '{kit_id}':\n{lines}")
