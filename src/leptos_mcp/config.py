from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from leptos_mcp.models import AppConfig


CONFIG_ENV = "LEPTOS_MCP_CONFIG"
LOG_LEVEL_ENV = "LEPTOS_MCP_LOG_LEVEL"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    pass


def load_config(path: str | Path | None = None) -> AppConfig:
    if path is None:
        path = _optional_str(os.environ.get(CONFIG_ENV))

    raw: dict = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as handle:
            try:
                raw = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"Config file is not valid JSON: {config_path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Config must be a JSON object")
        logger.debug("Loaded config from %s", config_path)

    server_raw = raw.get("server", {})
    if not isinstance(server_raw, dict):
        raise ConfigError("'server' must be an object")

    defaults = AppConfig()
    log_level = _optional_str(os.environ.get(LOG_LEVEL_ENV)) or _optional_str(raw.get("log_level"))
    log_level = (log_level or defaults.log_level).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"Unsupported log level: {log_level} (expected one of {', '.join(LOG_LEVELS)})")

    return AppConfig(
        server_name=_optional_str(server_raw.get("name")) or defaults.server_name,
        log_level=log_level,
    )


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
