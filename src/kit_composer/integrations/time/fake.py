"""Fake Time implementation for testing.

FakeTime advances a virtual clock on sleep() instead of blocking.
"""

from kit_composer.integrations.time.abc import Time


class FakeTime(Time):
    """In-memory fake that tracks sleep() calls without sleeping.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._sleep_calls: list[float] = []

    @property
    def sleep_calls(self) -> list[float]:
        """Seconds values passed to sleep(), for test assertions only."""
        return self._sleep_calls

    def sleep(self, seconds: float) -> None:
        self._sleep_calls.append(seconds)
        self._now += seconds

    def monotonic(self) -> float:
        return self._now
