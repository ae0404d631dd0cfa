"""Immutable catalog snapshot."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from kit_composer.models.kit import Kit


@dataclass(frozen=True)
class KitRequest:
    """A requested kit id, optionally pinned to one version."""

    kit_id: str
    version: int | None = None

    def __str__(self) -> str:
        if self.version is None:
            return self.kit_id
        return f"{self.kit_id}@{self.version}"


def parse_kit_request(value: str) -> KitRequest:
    """Parse ``id`` or ``id@version``.

    Raises:
        ValueError: If the pinned version is not a positive integer
    """
    if "@" not in value:
        return KitRequest(kit_id=value.strip())

    kit_id, _, version_text = value.partition("@")
    if not version_text.isdigit() or int(version_text) < 1:
        raise ValueError(f"Invalid kit version in request '{value}'")
    return KitRequest(kit_id=kit_id.strip(), version=int(version_text))


class Catalog:
    """Set of kits keyed by (id, version).

    Constructed once per invocation and passed explicitly to the graph builder
    and resolver. Never mutated after construction, so concurrent resolutions
    may share one instance.
    """

    def __init__(self, kits: list[Kit]) -> None:
        by_id: dict[str, dict[int, Kit]] = {}
        for kit in kits:
            versions = by_id.setdefault(kit.id, {})
            if kit.version in versions:
                raise ValueError(f"Duplicate kit {kit.id} v{kit.version} in catalog")
            versions[kit.version] = kit

        self._versions: Mapping[str, Mapping[int, Kit]] = MappingProxyType(
            {kit_id: MappingProxyType(dict(v)) for kit_id, v in by_id.items()}
        )

    def __contains__(self, kit_id: object) -> bool:
        return kit_id in self._versions

    def __iter__(self) -> Iterator[Kit]:
        """Iterate visible (latest) kits in ascending id order."""
        for kit_id in sorted(self._versions):
            yield self.latest(kit_id)

    def __len__(self) -> int:
        return len(self._versions)

    @property
    def ids(self) -> list[str]:
        return sorted(self._versions)

    @property
    def tags(self) -> set[str]:
        return {tag for kit in self for tag in kit.tags}

    def latest(self, kit_id: str) -> Kit:
        versions = self._versions[kit_id]
        return versions[max(versions)]

    def versions(self, kit_id: str) -> list[int]:
        if kit_id not in self._versions:
            return []
        return sorted(self._versions[kit_id])

    def get(self, kit_id: str, version: int | None = None) -> Kit | None:
        """Return the pinned version if given, otherwise the latest one."""
        if kit_id not in self._versions:
            return None
        if version is None:
            return self.latest(kit_id)
        return self._versions[kit_id].get(version)

    def with_tag(self, tag: str) -> list[Kit]:
        return [kit for kit in self if tag in kit.tags]
