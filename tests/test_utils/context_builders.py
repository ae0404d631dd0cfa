"""Builders for ComposerContext instances backed by fakes."""

from pathlib import Path

from kit_composer.config import ComposerConfig
from kit_composer.context import ComposerContext
from kit_composer.integrations.http_probe.fake import FakeHttpProbe
from kit_composer.integrations.secrets.fake import FakeSecretGenerator
from kit_composer.integrations.time.fake import FakeTime


def build_test_context(
    project_dir: Path,
    catalog_dir: Path,
    *,
    http_probe: FakeHttpProbe | None = None,
    time: FakeTime | None = None,
    secret_generator: FakeSecretGenerator | None = None,
    variables: dict[str, str] | None = None,
    strict: bool = False,
    verify_retries: int = 3,
) -> ComposerContext:
    """Context with fake integrations rooted at real tmp directories."""
    config = ComposerConfig(
        catalog_dir=catalog_dir,
        strict=strict,
        verify_timeout=10.0,
        verify_retries=verify_retries,
        variables=variables or {},
    )
    return ComposerContext.for_test(
        time=time,
        http_probe=http_probe,
        secret_generator=(
            secret_generator if secret_generator is not None else FakeSecretGenerator()
        ),
        config=config,
        project_dir=project_dir,
    )
