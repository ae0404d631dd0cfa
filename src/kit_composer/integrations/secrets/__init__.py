from kit_composer.integrations.secrets.abc import SecretGenerator
from kit_composer.integrations.secrets.real import RealSecretGenerator

__all__ = [
    "RealSecretGenerator",
    "SecretGenerator",
]
