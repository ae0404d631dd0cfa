"""Kit manifest parsing.

A kit document is Markdown with YAML front matter:

    ---
    id: stripe-checkout
    alias: Stripe Checkout
    type: kit
    is_base: false
    version: 2
    tags: [payments, stripe]
    placeholders:
      STRIPE_WEBHOOK_SECRET: {generate: secret}
      APP_NAME: {default: my-app}
    ---

    ## End State
    - ...

    ## File Structure
    ```ts file=src/routes.ts policy=appendable
    router.post("/checkout", checkout);
    ```

Prerequisite bullets are kept raw here; classifying them into hard and soft
dependencies needs the whole catalog (see kit_composer.io.catalog).
"""

import re
import shlex
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

import frontmatter
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kit_composer.errors import MalformedManifestError, ManifestProblem
from kit_composer.integrations.secrets.abc import GENERATOR_KINDS
from kit_composer.models.kit import (
    FileEntry,
    Kit,
    KitType,
    OwnershipPolicy,
    PlaceholderSpec,
    VerificationCriterion,
    validate_patch_position,
)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
KIT_ID_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")

SECTION_END_STATE = "end state"
SECTION_PRINCIPLES = "implementation principles"
SECTION_VERIFICATION = "verification criteria"
SECTION_PREREQUISITES = "prerequisites"
SECTION_REQUIRES = "requires"
SECTION_COMPATIBLE = "compatible with"
SECTION_FILES = "file structure"
SECTION_CONTRACTS = "interface contracts"

_HEADING = re.compile(r"^##\s+(.+?)\s*#*\s*$")
_FENCE = re.compile(r"^(\s*)(`{3,}|~{3,})(.*)$")
_BULLET = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(.*\S)\s*$")
_CHECKBOX = re.compile(r"^\[[ xX]\]\s*")

_CONTAINS = re.compile(r"^`([^`]+)`\s+(?:contains|includes)\s+`([^`]+)`", re.IGNORECASE)
_EXISTS = re.compile(r"^`([^`]+)`\s+(?:exists|is present)\b", re.IGNORECASE)
_HTTP = re.compile(r"^GET\s+`?(https?://[^\s`]+)`?(?:\s+returns\s+(\d{3}))?", re.IGNORECASE)


class PlaceholderSpecModel(BaseModel):
    """Front matter declaration for one placeholder."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default: str | None = None
    generate: str | None = None
    length: int = Field(default=32, gt=0)

    @field_validator("default", mode="before")
    @classmethod
    def coerce_default(cls, v: Any) -> Any:
        """Accept scalar YAML defaults such as ports."""
        if isinstance(v, (int, float, bool)):
            return str(v)
        return v

    @field_validator("generate")
    @classmethod
    def validate_generate(cls, v: str | None) -> str | None:
        if v is not None and v not in GENERATOR_KINDS:
            raise ValueError(f"generate must be one of {', '.join(GENERATOR_KINDS)}")
        return v


class KitMetadata(BaseModel):
    """Schema of a kit document's metadata block."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(..., min_length=1)
    alias: str = Field(..., min_length=1)
    type: KitType
    version: int = Field(..., gt=0, strict=True)
    is_base: bool = False
    tags: list[str] = Field(default_factory=list)
    description: str = ""
    placeholders: dict[str, PlaceholderSpecModel] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not KIT_ID_PATTERN.match(v):
            raise ValueError(f"id must be a kebab-case slug, got {v!r}")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: Any) -> Any:
        """Accept a comma-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [tag.strip() for tag in v.split(",") if tag.strip()]
        return v

    @field_validator("description", mode="before")
    @classmethod
    def coerce_description(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v


@dataclass(frozen=True)
class ParsedKit:
    """A kit whose prerequisite bullets have not been classified yet."""

    kit: Kit
    requires: tuple[str, ...]
    compatible_with: tuple[str, ...]


@dataclass(frozen=True)
class _Section:
    title: str
    lines: tuple[str, ...]

    @property
    def text(self) -> str:
        return "\n".join(self.lines).strip()


def scan_placeholders(text: str) -> set[str]:
    """Return every ``{{TOKEN}}`` name that occurs in text."""
    return {match.group(1) for match in PLACEHOLDER_PATTERN.finditer(text)}


def _closes_fence(match: re.Match[str], fence: str) -> bool:
    marker = match.group(2)
    return marker[0] == fence[0] and len(marker) >= len(fence) and not match.group(3).strip()


def _split_sections(body: str) -> dict[str, _Section]:
    """Split a body on level-two headings, ignoring headings inside code fences."""
    sections: dict[str, _Section] = {}
    title: str | None = None
    lines: list[str] = []
    fence: str | None = None

    def flush() -> None:
        if title is not None:
            key = title.lower().rstrip(":").strip()
            if key in sections:
                merged = (*sections[key].lines, *lines)
                sections[key] = _Section(title=sections[key].title, lines=merged)
            else:
                sections[key] = _Section(title=title, lines=tuple(lines))

    for line in body.splitlines():
        fence_match = _FENCE.match(line)
        if fence_match is not None:
            marker = fence_match.group(2)
            if fence is None:
                fence = marker
            elif _closes_fence(fence_match, fence):
                fence = None
        elif fence is None:
            heading = _HEADING.match(line)
            if heading is not None:
                flush()
                title = heading.group(1)
                lines = []
                continue
        lines.append(line)

    flush()
    return sections


def _bullets(section: _Section | None) -> tuple[str, ...]:
    if section is None:
        return ()

    items: list[str] = []
    in_fence = False
    for line in section.lines:
        if _FENCE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _BULLET.match(line)
        if match is None:
            continue
        item = _CHECKBOX.sub("", match.group(1)).strip()
        if item:
            items.append(item)
    return tuple(items)


def parse_verification_criterion(text: str) -> VerificationCriterion:
    """Classify one checklist bullet into a machine-checkable criterion if possible."""
    contains = _CONTAINS.match(text)
    if contains is not None:
        return VerificationCriterion(
            kind="file_contains", text=text, path=contains.group(1), needle=contains.group(2)
        )

    exists = _EXISTS.match(text)
    if exists is not None:
        return VerificationCriterion(kind="file_exists", text=text, path=exists.group(1))

    http = _HTTP.match(text)
    if http is not None:
        status = int(http.group(2)) if http.group(2) else 200
        return VerificationCriterion(
            kind="http", text=text, url=http.group(1), expected_status=status
        )

    return VerificationCriterion(kind="manual", text=text)


def normalize_path(path: str) -> str:
    """Collapse duplicate and trailing slashes so one file has one ledger key."""
    if not path:
        return path
    return str(PurePosixPath(path))


def validate_relative_path(path: str) -> str | None:
    """Return an error message if path is not a safe project-relative path."""
    pure = PurePosixPath(path)
    if not path or not pure.parts:
        return "file path is empty"
    if pure.is_absolute() or re.match(r"^[A-Za-z]:", path):
        return f"file path must be relative: {path}"
    if ".." in pure.parts:
        return f"file path must not leave the project: {path}"
    return None


def _parse_info_string(info: str) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for token in shlex.split(info):
        if "=" not in token:
            continue
        key, _, value = token.partition("=")
        attributes[key.strip().lower()] = value
    return attributes


def _parse_file_entries(section: _Section | None) -> tuple[list[FileEntry], list[str]]:
    """Extract fenced blocks that declare ``file=...`` from a File Structure section."""
    if section is None:
        return [], []

    entries: list[FileEntry] = []
    errors: list[str] = []
    fence: str | None = None
    attributes: dict[str, str] | None = None
    content: list[str] = []

    for line in section.lines:
        fence_match = _FENCE.match(line)
        if fence is None:
            if fence_match is None:
                continue
            fence = fence_match.group(2)
            try:
                parsed = _parse_info_string(fence_match.group(3))
            except ValueError as e:
                errors.append(f"unreadable code fence info string {fence_match.group(3)!r}: {e}")
                parsed = {}
            attributes = parsed if "file" in parsed else None
            content = []
            continue

        if fence_match is None or not _closes_fence(fence_match, fence):
            content.append(line)
            continue

        fence = None
        if attributes is None:
            continue
        entry, error = _build_file_entry(attributes, "\n".join(content) + "\n")
        if error is not None:
            errors.append(error)
        elif entry is not None:
            entries.append(entry)

    if fence is not None:
        errors.append("unterminated code fence in File Structure")
    return entries, errors


def _build_file_entry(
    attributes: dict[str, str], content: str
) -> tuple[FileEntry | None, str | None]:
    path = attributes["file"]
    path_error = validate_relative_path(path)
    if path_error is not None:
        return None, path_error

    policy_text = attributes.get("policy", OwnershipPolicy.EXCLUSIVE.value)
    try:
        policy = OwnershipPolicy(policy_text)
    except ValueError:
        return None, f"{path}: unknown ownership policy {policy_text!r}"

    try:
        position = validate_patch_position(attributes.get("position", "after"))
    except ValueError as e:
        return None, f"{path}: {e}"

    anchor = attributes.get("anchor")
    if policy is OwnershipPolicy.PATCH and not anchor:
        return None, f"{path}: patch entries require an anchor"

    return FileEntry(
        path=normalize_path(path),
        content=content,
        policy=policy,
        anchor=anchor if policy is OwnershipPolicy.PATCH else None,
        position=position,
    ), None


def check_internal_conflicts(files: list[FileEntry]) -> list[str]:
    """A kit may not declare conflicting policies for the same path against itself."""
    errors: list[str] = []
    policies: dict[str, OwnershipPolicy] = {}
    exclusive: set[str] = set()
    anchors: set[tuple[str, str]] = set()

    for entry in files:
        existing = policies.setdefault(entry.path, entry.policy)
        if existing is not entry.policy:
            errors.append(
                f"{entry.path}: declared both {existing.value} and {entry.policy.value}"
            )
            continue
        if entry.policy is OwnershipPolicy.EXCLUSIVE:
            if entry.path in exclusive:
                errors.append(f"{entry.path}: declared exclusive more than once")
            exclusive.add(entry.path)
        if entry.policy is OwnershipPolicy.PATCH and entry.anchor is not None:
            key = (entry.path, entry.anchor)
            if key in anchors:
                errors.append(f"{entry.path}: anchor {entry.anchor!r} patched more than once")
            anchors.add(key)
    return errors


def _format_validation_error(error: ValidationError) -> list[str]:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "metadata"
        messages.append(f"{location}: {detail['msg']}")
    return messages


def parse_kit_document(text: str, source_path: Path | None = None) -> ParsedKit:
    """Parse one kit document.

    Args:
        text: Raw document text
        source_path: Where the document was read from (for error messages)

    Returns:
        ParsedKit with raw prerequisite bullets

    Raises:
        MalformedManifestError: If required fields are missing or invalid, or
            the kit's own file set is internally inconsistent
    """
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as e:
        raise MalformedManifestError(
            [ManifestProblem(source_path, f"invalid metadata block: {e}")]
        ) from None

    problems: list[str] = []
    try:
        metadata = KitMetadata.model_validate(dict(post.metadata))
    except ValidationError as e:
        problems.extend(_format_validation_error(e))
        metadata = None

    body = post.content
    sections = _split_sections(body)
    files, file_errors = _parse_file_entries(sections.get(SECTION_FILES))
    problems.extend(file_errors)
    problems.extend(check_internal_conflicts(files))

    if metadata is None or problems:
        raise MalformedManifestError([ManifestProblem(source_path, p) for p in problems])

    specs = {
        name: PlaceholderSpec(
            name=name, default=spec.default, generate=spec.generate, length=spec.length
        )
        for name, spec in metadata.placeholders.items()
    }

    kit = Kit(
        id=metadata.id,
        alias=metadata.alias,
        type=metadata.type,
        version=metadata.version,
        is_base=metadata.is_base,
        tags=frozenset(metadata.tags),
        description=metadata.description.strip(),
        end_state=_bullets(sections.get(SECTION_END_STATE)),
        principles=_bullets(sections.get(SECTION_PRINCIPLES)),
        placeholders=frozenset(scan_placeholders(body)),
        placeholder_specs=specs,
        files=tuple(files),
        verification=tuple(
            parse_verification_criterion(item)
            for item in _bullets(sections.get(SECTION_VERIFICATION))
        ),
        sections={key: section.text for key, section in sections.items()},
        body=body,
        source_path=source_path,
    )

    requires = (
        *_bullets(sections.get(SECTION_PREREQUISITES)),
        *_bullets(sections.get(SECTION_REQUIRES)),
    )
    return ParsedKit(
        kit=kit,
        requires=requires,
        compatible_with=_bullets(sections.get(SECTION_COMPATIBLE)),
    )


def load_kit_document(path: Path) -> ParsedKit:
    """Read and parse a kit document from disk.

    Raises:
        MalformedManifestError: If the document is not UTF-8 or fails validation
    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise MalformedManifestError([ManifestProblem(path, f"not valid UTF-8: {e}")]) from None
    return parse_kit_document(text, source_path=path)
