"""Placeholder substitution for kit bodies, file contents and file paths.

Substitution is a single pass: substituted values are never rescanned, so the
same values applied to the same source always yield byte-identical output.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace

from kit_composer.errors import UnresolvedPlaceholderError
from kit_composer.integrations.secrets.abc import SecretGenerator
from kit_composer.io.manifest import PLACEHOLDER_PATTERN, normalize_path
from kit_composer.models.kit import FileEntry, Kit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedKit:
    """A kit's content after substitution."""

    kit_id: str
    body: str
    files: tuple[FileEntry, ...]
    values: dict[str, str]
    generated: dict[str, str]


class PlanValues:
    """Values shared by every kit in one plan run.

    User-supplied values always win. Values generated for a kit become visible
    to later kits in the same run; kit defaults stay local to their kit.
    """

    def __init__(self, user_values: Mapping[str, str]) -> None:
        self._user = dict(user_values)
        self._shared: dict[str, str] = {}

    def lookup(self, name: str) -> str | None:
        if name in self._user:
            return self._user[name]
        return self._shared.get(name)

    def publish(self, values: Mapping[str, str]) -> None:
        for name, value in values.items():
            if name not in self._user:
                self._shared.setdefault(name, value)

    def snapshot(self) -> dict[str, str]:
        return {**self._shared, **self._user}


def resolve_values(
    kit: Kit,
    values: PlanValues,
    generator: SecretGenerator,
) -> tuple[dict[str, str], dict[str, str]]:
    """Assemble the value mapping for one kit.

    Returns:
        (values for every declared placeholder that could be resolved, newly generated values)

    Raises:
        UnresolvedPlaceholderError: Listing each missing token once
    """
    resolved: dict[str, str] = {}
    generated: dict[str, str] = {}
    missing: list[str] = []

    for name in sorted(kit.placeholders):
        existing = values.lookup(name)
        if existing is not None:
            resolved[name] = existing
            continue

        spec = kit.placeholder_specs.get(name)
        if spec is not None and spec.default is not None:
            resolved[name] = spec.default
        elif spec is not None and spec.generate is not None:
            value = generator.generate(spec.generate, spec.length)
            resolved[name] = value
            generated[name] = value
            logger.debug("Generated %s value for {{%s}} in kit %s", spec.generate, name, kit.id)
        else:
            missing.append(name)

    if missing:
        raise UnresolvedPlaceholderError({kit.id: missing})
    return resolved, generated


def find_unresolved(kits: Iterable[Kit], user_values: Mapping[str, str]) -> dict[str, list[str]]:
    """Find every placeholder in a plan that nothing can supply.

    Walks kits in plan order, tracking which names earlier kits will generate,
    so a whole plan can be rejected before any kit touches the tree.

    Returns:
        Mapping of kit id to its sorted missing tokens; empty if all resolve
    """
    available = set(user_values)
    missing: dict[str, list[str]] = {}
    for kit in kits:
        unresolved = []
        for name in sorted(kit.placeholders):
            spec = kit.placeholder_specs.get(name)
            if name in available:
                continue
            if spec is not None and (spec.default is not None or spec.generate is not None):
                continue
            unresolved.append(name)
        if unresolved:
            missing[kit.id] = unresolved
        available.update(
            name
            for name, spec in kit.placeholder_specs.items()
            if spec.default is None and spec.generate is not None and name in kit.placeholders
        )
    return missing


def substitute(text: str, values: Mapping[str, str]) -> str:
    """Replace every known ``{{TOKEN}}``; unknown tokens are left untouched."""

    def replacement(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in values:
            return values[name]
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replacement, text)


def render_kit(kit: Kit, values: PlanValues, generator: SecretGenerator) -> RenderedKit:
    """Substitute placeholders throughout a kit and publish its new values.

    Args:
        kit: Kit to render
        values: Shared plan values; updated with this kit's generated values
        generator: Source of generated values (e.g. secrets)

    Returns:
        RenderedKit with substituted body and files

    Raises:
        UnresolvedPlaceholderError: If any declared placeholder has no value,
            default or generator. Nothing is published in that case.
    """
    resolved, generated = resolve_values(kit, values, generator)

    files = tuple(
        replace(
            entry,
            path=normalize_path(substitute(entry.path, resolved)),
            content=substitute(entry.content, resolved),
        )
        for entry in kit.files
    )

    values.publish(generated)
    return RenderedKit(
        kit_id=kit.id,
        body=substitute(kit.body, resolved),
        files=files,
        values=resolved,
        generated=generated,
    )
