"""Generated placeholder values abstraction."""

from abc import ABC, abstractmethod

GENERATOR_KINDS = ("secret", "hex", "uuid")


class SecretGenerator(ABC):
    """Produces values for placeholders declared with ``generate:``."""

    @abstractmethod
    def generate(self, kind: str, length: int) -> str:
        """Generate a fresh value.

        Args:
            kind: One of GENERATOR_KINDS
            length: Number of random bytes (ignored for "uuid")

        Raises:
            ValueError: If kind is unknown
        """
        ...
