"""Shared fixtures for opdoc tests."""

from collections.abc import Generator
from pathlib import Path

import pytest

from opdoc.config import OpDocConfig, clear_config_cache


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Run every test with default settings, away from any real pyproject.toml."""
    for var in (
        "OPDOC_CONFIG_PATH",
        "OPDOC_SUFFIX",
        "OPDOC_OMIT_EMPTY",
        "OPDOC_LOG_LEVEL",
        "OPDOC_LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def config() -> OpDocConfig:
    """Default configuration."""
    return OpDocConfig()
