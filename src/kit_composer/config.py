"""Project configuration loaded from kit-composer.toml.

All keys are optional:

    catalog = "kits"          # directory of kit manifests, relative to the project
    strict = false
    verify_timeout = 10.0     # seconds, per live check
    verify_retries = 3

    [vars]
    APP_NAME = "acme"

KIT_COMPOSER_CATALOG overrides the catalog location. CLI flags override both.
"""

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "kit-composer.toml"
CATALOG_ENV_VAR = "KIT_COMPOSER_CATALOG"
DEBUG_ENV_VAR = "KIT_COMPOSER_DEBUG"

DEFAULT_CATALOG_DIR = "kits"
DEFAULT_VERIFY_TIMEOUT = 10.0
DEFAULT_VERIFY_RETRIES = 3


@dataclass(frozen=True)
class ComposerConfig:
    """Immutable configuration for one invocation."""

    catalog_dir: Path
    strict: bool = False
    verify_timeout: float = DEFAULT_VERIFY_TIMEOUT
    verify_retries: int = DEFAULT_VERIFY_RETRIES
    variables: dict[str, str] = field(default_factory=dict)

    @staticmethod
    def default(project_dir: Path) -> "ComposerConfig":
        return ComposerConfig(catalog_dir=project_dir / DEFAULT_CATALOG_DIR)

    def with_overrides(
        self,
        *,
        catalog_dir: Path | None = None,
        strict: bool | None = None,
        verify_timeout: float | None = None,
        variables: dict[str, str] | None = None,
    ) -> "ComposerConfig":
        """Return a new config with CLI overrides applied; None means keep."""
        return replace(
            self,
            catalog_dir=catalog_dir if catalog_dir is not None else self.catalog_dir,
            strict=strict if strict is not None else self.strict,
            verify_timeout=verify_timeout if verify_timeout is not None else self.verify_timeout,
            variables={**self.variables, **(variables or {})},
        )


def load_config(project_dir: Path) -> ComposerConfig:
    """Load kit-composer.toml from project_dir, falling back to defaults.

    Raises:
        ValueError: If the file is malformed or has values of the wrong type
    """
    config_path = project_dir / CONFIG_FILENAME
    data: dict[str, object] = {}
    if config_path.exists():
        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Malformed {config_path}: {e}") from None

    catalog_value = os.environ.get(CATALOG_ENV_VAR) or data.get("catalog", DEFAULT_CATALOG_DIR)
    if not isinstance(catalog_value, str):
        raise ValueError(f"'catalog' in {config_path} must be a string")
    catalog_dir = Path(catalog_value).expanduser()
    if not catalog_dir.is_absolute():
        catalog_dir = project_dir / catalog_dir

    strict = data.get("strict", False)
    if not isinstance(strict, bool):
        raise ValueError(f"'strict' in {config_path} must be true or false")

    timeout = data.get("verify_timeout", DEFAULT_VERIFY_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError(f"'verify_timeout' in {config_path} must be a positive number")

    retries = data.get("verify_retries", DEFAULT_VERIFY_RETRIES)
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
        raise ValueError(f"'verify_retries' in {config_path} must be a non-negative integer")

    raw_vars = data.get("vars", {})
    if not isinstance(raw_vars, dict):
        raise ValueError(f"'vars' in {config_path} must be a table")

    return ComposerConfig(
        catalog_dir=catalog_dir,
        strict=strict,
        verify_timeout=float(timeout),
        verify_retries=retries,
        variables={str(key): str(value) for key, value in raw_vars.items()},
    )


def parse_var(value: str) -> tuple[str, str]:
    """Parse a ``KEY=VALUE`` pair from the command line.

    Raises:
        ValueError: If value has no '=' or an empty key
    """
    key, sep, rest = value.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"Invalid --var '{value}' (expected KEY=VALUE)")
    return key.strip(), rest


def debug_from_env() -> bool:
    return os.environ.get(DEBUG_ENV_VAR, "").lower() in ("1", "true", "yes")
