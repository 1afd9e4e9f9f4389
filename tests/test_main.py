"""Tests for the __main__ CLI entry point."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cronpost.__main__ import main
from cronpost.errors import PersistenceError
from cronpost.logging_config import _stop_file_listener


@pytest.fixture(autouse=True)
def _isolated_home(tmp_home: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("CRONPOST_HOME", str(tmp_home))
    for name in ("PORT", "API_KEY", "SERVER_URL"):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    _stop_file_listener()
    root.handlers[:] = handlers
    root.setLevel(level)


def _write_jobs(tmp_home: Path, data: object) -> None:
    jobs = tmp_home / "data" / "jobs.json"
    jobs.parent.mkdir(parents=True, exist_ok=True)
    jobs.write_text(json.dumps(data) if not isinstance(data, str) else data)


class TestValidate:
    def test_valid_expression(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["validate", "*/15 * * * *", "-n", "3"])
        out = capsys.readouterr().out
        assert "*/15 * * * *" in out
        assert out.count("T") == 3

    def test_invalid_expression(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "99 * * * *"])
        assert exc_info.value.code == 1
        assert "Bad minute" in capsys.readouterr().out

    def test_uses_configured_timezone(
        self, tmp_home: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config_path = tmp_home / "config" / "config.json"
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"timezone": "Asia/Kolkata"}))
        main(["validate", "0 9 * * *", "-n", "1"])
        assert "+05:30" in capsys.readouterr().out


class TestStatus:
    def test_no_jobs(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["status"])
        assert "No jobs registered" in capsys.readouterr().out

    def test_lists_jobs(self, tmp_home: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _write_jobs(
            tmp_home,
            {
                "nightly": {"url": "https://a.example", "schedule": "0 3 * * *"},
                "broken": {"url": "https://b.example", "schedule": "nope"},
            },
        )
        main(["status"])
        out = capsys.readouterr().out
        assert "nightly" in out
        assert "broken" in out
        assert "invalid" in out

    def test_corrupt_jobs_file(self, tmp_home: Path) -> None:
        _write_jobs(tmp_home, "{corrupt")
        with pytest.raises(SystemExit) as exc_info:
            main(["status"])
        assert exc_info.value.code == 1


class TestServe:
    def test_runs_app(self, tmp_home: Path) -> None:
        app = MagicMock()
        app.run = AsyncMock()
        with patch("cronpost.app.CronpostApp", return_value=app) as app_cls:
            main(["serve"])
        app.run.assert_awaited_once()
        config, paths = app_cls.call_args.args
        assert config.server.port == 3000
        assert paths.jobs_path == tmp_home.resolve() / "data" / "jobs.json"
        assert (tmp_home / "config" / "config.json").exists()

    def test_default_command_is_serve(self) -> None:
        app = MagicMock()
        app.run = AsyncMock()
        with patch("cronpost.app.CronpostApp", return_value=app):
            main([])
        app.run.assert_awaited_once()

    def test_data_dir_from_config(self, tmp_home: Path, tmp_path: Path) -> None:
        volume = tmp_path / "volume"
        config_path = tmp_home / "config" / "config.json"
        config_path.parent.mkdir(parents=True)
        config_path.write_text(json.dumps({"data_dir": str(volume)}))
        app = MagicMock()
        app.run = AsyncMock()
        with patch("cronpost.app.CronpostApp", return_value=app) as app_cls:
            main(["serve"])
        _, paths = app_cls.call_args.args
        assert paths.jobs_path == volume.resolve() / "jobs.json"

    def test_persistence_error_exits(self) -> None:
        app = MagicMock()
        app.run = AsyncMock(side_effect=PersistenceError("corrupt"))
        with (
            patch("cronpost.app.CronpostApp", return_value=app),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["serve"])
        assert exc_info.value.code == 1

    def test_bad_config_exits(self, tmp_home: Path) -> None:
        config_path = tmp_home / "config" / "config.json"
        config_path.parent.mkdir(parents=True)
        config_path.write_text("{broken")
        with pytest.raises(SystemExit) as exc_info:
            main(["serve"])
        assert exc_info.value.code == 1
