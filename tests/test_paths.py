"""Tests for path resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from cronpost.paths import resolve_paths


def test_layout_under_home(tmp_path: Path) -> None:
    paths = resolve_paths(tmp_path)
    assert paths.home == tmp_path.resolve()
    assert paths.config_path == tmp_path.resolve() / "config" / "config.json"
    assert paths.jobs_path == tmp_path.resolve() / "data" / "jobs.json"
    assert paths.logs_dir == tmp_path.resolve() / "logs"


def test_data_dir_override(tmp_path: Path) -> None:
    volume = tmp_path / "volume"
    paths = resolve_paths(tmp_path / "home", data_dir=volume)
    assert paths.data_dir == volume.resolve()
    assert paths.jobs_path == volume.resolve() / "jobs.json"
    assert paths.config_path.parent.parent == (tmp_path / "home").resolve()


def test_empty_data_dir_uses_default(tmp_path: Path) -> None:
    assert resolve_paths(tmp_path, data_dir="").data_dir == tmp_path.resolve() / "data"


def test_env_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CRONPOST_HOME", str(tmp_path / "svc"))
    assert resolve_paths().home == (tmp_path / "svc").resolve()


def test_default_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CRONPOST_HOME", raising=False)
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
    assert resolve_paths().home == (tmp_path / ".cronpost").resolve()


def test_paths_are_frozen(tmp_path: Path) -> None:
    paths = resolve_paths(tmp_path)
    with pytest.raises(AttributeError):
        paths.home = tmp_path  # type: ignore[misc]
