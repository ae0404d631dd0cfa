"""Application context with dependency injection.

The ComposerContext dataclass holds every integration (clock, HTTP probe,
secret generator) plus the loaded configuration. It is created once at the CLI
entry point and threaded through plan runs.
"""

from dataclasses import dataclass
from pathlib import Path

from kit_composer.config import ComposerConfig, load_config
from kit_composer.integrations.http_probe.abc import HttpProbe
from kit_composer.integrations.secrets.abc import SecretGenerator
from kit_composer.integrations.time.abc import Time


@dataclass(frozen=True)
class ComposerContext:
    """Immutable context holding all dependencies for kit-composer operations.

    Attributes:
        time: Clock used for verification backoff and deadlines
        http_probe: HTTP client used by live verification checks
        secret_generator: Source of generated placeholder values
        config: Loaded configuration (CLI overrides already applied)
        project_dir: Root of the generated project (the working tree)
        debug: Whether to show full stack traces
    """

    time: Time
    http_probe: HttpProbe
    secret_generator: SecretGenerator
    config: ComposerConfig
    project_dir: Path
    debug: bool

    @staticmethod
    def for_test(
        time: Time | None = None,
        http_probe: HttpProbe | None = None,
        secret_generator: SecretGenerator | None = None,
        config: ComposerConfig | None = None,
        project_dir: Path | None = None,
        debug: bool = False,
    ) -> "ComposerContext":
        """Create a test context; unspecified integrations default to fakes.

        Example:
            >>> from kit_composer.integrations.http_probe.fake import FakeHttpProbe
            >>> ctx = ComposerContext.for_test(
            ...     http_probe=FakeHttpProbe({"http://localhost:3000/health": [200]}),
            ...     project_dir=tmp_path,
            ... )
        """
        from kit_composer.integrations.http_probe.fake import FakeHttpProbe
        from kit_composer.integrations.secrets.fake import FakeSecretGenerator
        from kit_composer.integrations.time.fake import FakeTime

        resolved_project_dir = project_dir if project_dir is not None else Path("/fake/project")
        resolved_config = (
            config if config is not None else ComposerConfig.default(resolved_project_dir)
        )
        return ComposerContext(
            time=time if time is not None else FakeTime(),
            http_probe=http_probe if http_probe is not None else FakeHttpProbe(),
            secret_generator=(
                secret_generator if secret_generator is not None else FakeSecretGenerator()
            ),
            config=resolved_config,
            project_dir=resolved_project_dir,
            debug=debug,
        )


def create_context(
    project_dir: Path,
    *,
    debug: bool,
    catalog_dir: Path | None = None,
    strict: bool | None = None,
    verify_timeout: float | None = None,
    variables: dict[str, str] | None = None,
) -> ComposerContext:
    """Create the production context with real integrations.

    Loads kit-composer.toml from project_dir and applies CLI overrides on top.
    """
    from kit_composer.integrations.http_probe.real import RealHttpProbe
    from kit_composer.integrations.secrets.real import RealSecretGenerator
    from kit_composer.integrations.time.real import RealTime

    config = load_config(project_dir).with_overrides(
        catalog_dir=catalog_dir,
        strict=strict,
        verify_timeout=verify_timeout,
        variables=variables,
    )
    return ComposerContext(
        time=RealTime(),
        http_probe=RealHttpProbe(),
        secret_generator=RealSecretGenerator(),
        config=config,
        project_dir=project_dir,
        debug=debug,
    )
