"""Kit manifest models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, cast


class KitType(Enum):
    """Closed set of manifest types. Role information lives in tags and is_base."""

    KIT = "kit"


class OwnershipPolicy(Enum):
    """How a kit may modify a path that other kits may also touch."""

    EXCLUSIVE = "exclusive"
    APPENDABLE = "appendable"
    PATCH = "patch"


PatchPosition = Literal["after", "before"]


def validate_patch_position(value: str) -> PatchPosition:
    """Validate and return a patch insertion position.

    Raises:
        ValueError: If value is not "after" or "before"
    """
    if value not in ("after", "before"):
        raise ValueError(f"Invalid patch position: {value}")
    return cast(PatchPosition, value)


SoftKind = Literal["tag", "kit"]


@dataclass(frozen=True, order=True)
class SoftDependency:
    """Advisory ordering hint. Never blocks application."""

    kind: SoftKind
    value: str


@dataclass(frozen=True)
class FileEntry:
    """One templated file contribution declared by a kit."""

    path: str
    content: str
    policy: OwnershipPolicy
    anchor: str | None = None
    position: PatchPosition = "after"


@dataclass(frozen=True)
class PlaceholderSpec:
    """Default value or generator declaration for one placeholder."""

    name: str
    default: str | None = None
    generate: str | None = None  # "secret", "hex" or "uuid"
    length: int = 32


CriterionKind = Literal["file_exists", "file_contains", "http", "manual"]


@dataclass(frozen=True)
class VerificationCriterion:
    """One checkable (or manual) item from a kit's verification checklist."""

    kind: CriterionKind
    text: str
    path: str | None = None
    needle: str | None = None
    url: str | None = None
    expected_status: int = 200


@dataclass(frozen=True)
class Kit:
    """A fully parsed kit manifest, with prerequisites classified against a catalog."""

    id: str
    alias: str
    type: KitType
    version: int
    is_base: bool = False
    tags: frozenset[str] = frozenset()
    description: str = ""
    end_state: tuple[str, ...] = ()
    principles: tuple[str, ...] = ()
    placeholders: frozenset[str] = frozenset()
    placeholder_specs: dict[str, PlaceholderSpec] = field(default_factory=dict, hash=False)
    hard_dependencies: frozenset[str] = frozenset()
    soft_dependencies: frozenset[SoftDependency] = frozenset()
    notes: tuple[str, ...] = ()
    files: tuple[FileEntry, ...] = ()
    verification: tuple[VerificationCriterion, ...] = ()
    sections: dict[str, str] = field(default_factory=dict, hash=False)
    body: str = ""
    source_path: Path | None = None

    @property
    def ref(self) -> str:
        """Pinned reference string, e.g. ``stripe-checkout@2``."""
        return f"{self.id}@{self.version}"
