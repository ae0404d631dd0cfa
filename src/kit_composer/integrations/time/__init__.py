from kit_composer.integrations.time.abc import Time
from kit_composer.integrations.time.real import RealTime

__all__ = [
    "RealTime",
    "Time",
]
