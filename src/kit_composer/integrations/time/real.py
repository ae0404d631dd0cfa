"""Real time implementation."""

import time

from kit_composer.integrations.time.abc import Time


class RealTime(Time):
    """Production implementation using the time module."""

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def monotonic(self) -> float:
        return time.monotonic()
