"""Cryptographically random SecretGenerator."""

import secrets
import uuid

from kit_composer.integrations.secrets.abc import SecretGenerator


class RealSecretGenerator(SecretGenerator):
    """Production implementation using the secrets module."""

    def generate(self, kind: str, length: int) -> str:
        if kind == "secret":
            return secrets.token_urlsafe(length)
        if kind == "hex":
            return secrets.token_hex(length)
        if kind == "uuid":
            return str(uuid.uuid4())
        raise ValueError(f"Unknown generator kind: {kind}")
