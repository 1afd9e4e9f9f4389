"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from cronpost.paths import CronpostPaths, resolve_paths


@pytest.fixture
def tmp_home(tmp_path: Path) -> Path:
    """Temporary ~/.cronpost equivalent."""
    home = tmp_path / ".cronpost"
    home.mkdir()
    return home


@pytest.fixture
def paths(tmp_home: Path) -> CronpostPaths:
    return resolve_paths(tmp_home)
