"""Shared fixtures for kit-composer tests."""

from pathlib import Path

import pytest

from kit_composer.config import CATALOG_ENV_VAR, DEBUG_ENV_VAR


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CATALOG_ENV_VAR, raising=False)
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def catalog_dir(tmp_path: Path) -> Path:
    path = tmp_path / "kits"
    path.mkdir()
    return path
