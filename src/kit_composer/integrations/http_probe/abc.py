"""HTTP probe abstraction used by live verification checks."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProbeResponse:
    """Minimal view of an HTTP response."""

    status_code: int


class ProbeError(Exception):
    """The probe could not get any response (connection refused, timeout, ...)."""

    def __init__(self, message: str, *, timed_out: bool = False) -> None:
        super().__init__(message)
        self.timed_out = timed_out


class HttpProbe(ABC):
    """Abstract HTTP GET for dependency injection."""

    @abstractmethod
    def get(self, url: str, *, timeout: float) -> ProbeResponse:
        """Issue a GET request.

        Args:
            url: Absolute URL to probe
            timeout: Per-request timeout in seconds

        Returns:
            ProbeResponse with the status code

        Raises:
            ProbeError: If no response was received
        """
        ...
