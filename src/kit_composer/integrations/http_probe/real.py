"""Real HttpProbe backed by httpx."""

import httpx

from kit_composer.integrations.http_probe.abc import HttpProbe, ProbeError, ProbeResponse


class RealHttpProbe(HttpProbe):
    """Production implementation issuing real GET requests."""

    def get(self, url: str, *, timeout: float) -> ProbeResponse:
        try:
            response = httpx.get(url, timeout=timeout, follow_redirects=True)
        except httpx.TimeoutException as e:
            raise ProbeError(f"Timed out after {timeout}s: {url}", timed_out=True) from e
        except httpx.TransportError as e:
            raise ProbeError(f"{type(e).__name__}: {e}") from e
        return ProbeResponse(status_code=response.status_code)
