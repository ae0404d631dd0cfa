"""Clock operations abstraction for testing.

Verification probes sleep between retries and track a deadline. Routing both
through this ABC keeps retry tests fast and deterministic.
"""

from abc import ABC, abstractmethod


class Time(ABC):
    """Abstract time operations for dependency injection."""

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Sleep for specified number of seconds."""
        ...

    @abstractmethod
    def monotonic(self) -> float:
        """Return a monotonic clock reading in seconds."""
        ...
