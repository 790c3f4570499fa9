"""Configuration helpers for the hydra-cli CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_PATH_ENV_VAR = "HYDRA_CLI_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".hydra-cli"


@dataclass(frozen=True)
class CLIConfig:
    redis_url: Any = None
    redis_port: Any = None
    redis_db: Any = None
    raw: dict[str, Any] = field(default_factory=dict)

    def connection_params(self) -> tuple[str, int, int]:
        """Return ``(host, port, db)`` coerced for the store client."""
        host = str(self.redis_url or "").strip()
        if not host:
            raise ConfigError("redisUrl must not be empty")
        port = _to_int(self.redis_port, "redisPort")
        db = _to_int(self.redis_db if self.redis_db not in (None, "") else 0, "redisDb")
        return host, port, db


class ConfigError(ValueError):
    """Raised when CLI config is invalid or cannot be written."""


def _to_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"{field_name} must be an integer")


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path:
        return Path(path)
    env_path = os.getenv(CONFIG_PATH_ENV_VAR)
    if env_path and env_path.strip():
        return Path(env_path.strip())
    return DEFAULT_CONFIG_PATH


def load_cli_config(path: str | Path | None = None) -> CLIConfig | None:
    """Load the config file; a missing or corrupt file yields ``None``."""
    config_path = resolve_config_path(path)
    try:
        parsed = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(parsed, dict):
        return None
    return CLIConfig(
        redis_url=parsed.get("redisUrl"),
        redis_port=parsed.get("redisPort"),
        redis_db=parsed.get("redisDb"),
        raw=parsed,
    )


def save_cli_config(
    path: str | Path | None,
    *,
    redis_url: str,
    redis_port: str,
    redis_db: str,
    existing: CLIConfig | None = None,
) -> dict[str, Any]:
    config_path = resolve_config_path(path)
    data = dict(existing.raw) if existing is not None else {}
    data["redisUrl"] = redis_url
    data["redisPort"] = redis_port
    data["redisDb"] = redis_db
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(data), encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to write config file: {config_path}: {exc}") from exc
    return data
