from kit_composer.integrations.http_probe.abc import HttpProbe, ProbeError, ProbeResponse
from kit_composer.integrations.http_probe.real import RealHttpProbe

__all__ = [
    "HttpProbe",
    "ProbeError",
    "ProbeResponse",
    "RealHttpProbe",
]
