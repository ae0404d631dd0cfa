"""Deterministic SecretGenerator for testing."""

from kit_composer.integrations.secrets.abc import GENERATOR_KINDS, SecretGenerator


class FakeSecretGenerator(SecretGenerator):
    """Returns predictable values (``fake-secret-1``, ``fake-secret-2``, ...)."""

    def __init__(self) -> None:
        self._calls: list[str] = []

    @property
    def calls(self) -> list[str]:
        """Kinds requested, in order, for test assertions only."""
        return self._calls

    def generate(self, kind: str, length: int) -> str:
        if kind not in GENERATOR_KINDS:
            raise ValueError(f"Unknown generator kind: {kind}")
        self._calls.append(kind)
        return f"fake-{kind}-{len(self._calls)}"
