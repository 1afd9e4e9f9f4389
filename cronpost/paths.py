"""Central path resolution for the cronpost home directory.

Every path the service touches is a field or property of ``CronpostPaths``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CronpostPaths:
    """Resolved, immutable paths derived from ``home`` (default ``~/.cronpost``).

    ``data_dir`` may live elsewhere (e.g. a mounted volume); it defaults to
    ``home / "data"``.
    """

    home: Path
    data_override: Path | None = None

    @property
    def config_dir(self) -> Path:
        return self.home / "config"

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def data_dir(self) -> Path:
        return self.data_override if self.data_override is not None else self.home / "data"

    @property
    def jobs_path(self) -> Path:
        return self.data_dir / "jobs.json"

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"


def resolve_paths(
    home: str | Path | None = None,
    *,
    data_dir: str | Path | None = None,
) -> CronpostPaths:
    """Build CronpostPaths from explicit values, env vars, or defaults.

    Args:
        home: Service home. Falls back to ``$CRONPOST_HOME`` or ``~/.cronpost``.
        data_dir: Directory holding ``jobs.json``. Empty means ``<home>/data``.
    """
    if home is not None:
        root = Path(home).expanduser().resolve()
    else:
        root = (
            Path(os.environ.get("CRONPOST_HOME", str(Path.home() / ".cronpost")))
            .expanduser()
            .resolve()
        )
    data = Path(data_dir).expanduser().resolve() if data_dir else None
    return CronpostPaths(home=root, data_override=data)
