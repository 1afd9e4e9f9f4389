"""Service configuration: pydantic models, config.json loading, env overrides."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from cronpost.paths import CronpostPaths, resolve_paths

logger = logging.getLogger(__name__)


class ServerConfig(BaseModel):
    """Settings for the HTTP API."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    api_key: str = ""
    max_body_bytes: int = 65536


class DeliveryConfig(BaseModel):
    """Settings for outbound POSTs made when jobs fire."""

    timeout_seconds: float | None = None
    user_agent: str = "cronpost"


class KeepaliveConfig(BaseModel):
    """Periodic self-ping for hosts that idle quiet processes."""

    enabled: bool = False
    url: str = ""
    interval_minutes: float = 14.0


class ServiceConfig(BaseModel):
    """Top-level configuration loaded from config.json."""

    log_level: str = "INFO"
    data_dir: str = ""
    timezone: str = ""
    created_by: str = "cronpost"
    server: ServerConfig = Field(default_factory=ServerConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    keepalive: KeepaliveConfig = Field(default_factory=KeepaliveConfig)

    @property
    def keepalive_url(self) -> str:
        return self.keepalive.url or f"http://localhost:{self.server.port}/health"


def deep_merge_config(
    user: dict[str, object],
    defaults: dict[str, object],
) -> tuple[dict[str, object], bool]:
    """Recursively merge *defaults* into *user*, preserving user values.

    Returns ``(merged_dict, changed)`` where *changed* is True when new keys were added.
    """
    result: dict[str, object] = dict(user)
    changed = False
    new_keys = 0
    for key, default_val in defaults.items():
        if key not in result:
            result[key] = default_val
            changed = True
            new_keys += 1
        elif isinstance(default_val, dict) and isinstance(result[key], dict):
            sub_merged, sub_changed = deep_merge_config(
                result[key],  # type: ignore[arg-type]
                default_val,
            )
            result[key] = sub_merged
            changed = changed or sub_changed
    if new_keys:
        logger.info("Config deep-merge: %d new keys added", new_keys)
    return result, changed


def apply_env_overrides(
    config: ServiceConfig, environ: Mapping[str, str] | None = None
) -> ServiceConfig:
    """Overlay ``PORT``, ``API_KEY`` and ``SERVER_URL`` from the environment."""
    env = os.environ if environ is None else environ
    server_updates: dict[str, object] = {}
    if env.get("PORT", "").strip():
        server_updates["port"] = int(env["PORT"])
    if env.get("API_KEY"):
        server_updates["api_key"] = env["API_KEY"]
    if server_updates:
        config = config.model_copy(
            update={"server": config.server.model_copy(update=server_updates)},
        )
    if env.get("SERVER_URL", "").strip():
        url = env["SERVER_URL"].rstrip("/") + "/health"
        config = config.model_copy(
            update={"keepalive": config.keepalive.model_copy(update={"url": url})},
        )
        if not config.keepalive.enabled:
            logger.warning(
                "SERVER_URL is set but keepalive is disabled; "
                "set keepalive.enabled in config.json to ping %s",
                url,
            )
    return config


def load_config(paths: CronpostPaths | None = None) -> ServiceConfig:
    """Load, auto-create, and smart-merge the service config.

    On first start a default ``config.json`` is written.  On every load the
    file is deep-merged with the current pydantic defaults so new settings
    appear without touching existing values.  Environment overrides are
    applied last and never written back.
    """
    paths = paths or resolve_paths()
    config_path = paths.config_path
    defaults = ServiceConfig().model_dump(mode="json")

    if not config_path.exists():
        _write_json(config_path, defaults)
        logger.info("Created default config at %s", config_path)

    user_data: dict[str, object] = json.loads(config_path.read_text(encoding="utf-8"))
    merged, changed = deep_merge_config(user_data, defaults)
    if changed:
        _write_json(config_path, merged)
        logger.info("Extended config with new default fields")

    return apply_env_overrides(ServiceConfig.model_validate(merged))


def _write_json(path: Path, data: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def resolve_timezone(configured: str = "") -> ZoneInfo:
    """Resolve timezone: config value -> ``$TZ`` -> host system -> UTC.

    Invalid or empty *configured* values fall through to the next source.
    """
    trimmed = configured.strip()
    if trimmed:
        try:
            return ZoneInfo(trimmed)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Invalid timezone '%s', falling back to host/UTC", trimmed)

    tz_env = os.environ.get("TZ", "").strip()
    if tz_env:
        try:
            return ZoneInfo(tz_env)
        except (ZoneInfoNotFoundError, ValueError):
            pass

    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        target = str(localtime.resolve())
        # /usr/share/zoneinfo/Europe/Berlin -> Europe/Berlin
        marker = "/zoneinfo/"
        idx = target.find(marker)
        if idx != -1:
            candidate = target[idx + len(marker) :]
            try:
                return ZoneInfo(candidate)
            except (ZoneInfoNotFoundError, ValueError):
                pass

    return ZoneInfo("UTC")
