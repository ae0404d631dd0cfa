"""Fake HttpProbe for testing."""

from kit_composer.integrations.http_probe.abc import HttpProbe, ProbeError, ProbeResponse


class FakeHttpProbe(HttpProbe):
    """Replays scripted responses per URL.

    Each URL maps to a sequence of status codes or ProbeError instances that
    are returned (or raised) in order; the last entry repeats once the
    sequence is exhausted. Unknown URLs raise ProbeError.
    """

    def __init__(self, responses: dict[str, list[int | ProbeError]] | None = None) -> None:
        self._responses = {url: list(seq) for url, seq in (responses or {}).items()}
        self._calls: list[tuple[str, float]] = []

    @property
    def calls(self) -> list[tuple[str, float]]:
        """(url, timeout) pairs in call order, for test assertions only."""
        return self._calls

    def get(self, url: str, *, timeout: float) -> ProbeResponse:
        self._calls.append((url, timeout))
        sequence = self._responses.get(url)
        if not sequence:
            raise ProbeError(f"Connection refused: {url}")

        entry = sequence[0] if len(sequence) == 1 else sequence.pop(0)
        if isinstance(entry, ProbeError):
            raise entry
        return ProbeResponse(status_code=entry)
