"""Settings and local config helpers for the loyal-openclaw CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlsplit

from loyal_openclaw.errors import ConfigError
from loyal_openclaw.files import dump_json, ensure_private_dir, write_private_file

DEFAULT_SERVER_URL = "http://5.252.23.92:3000"
DEFAULT_PROVIDER = "Loyal"
DEFAULT_MODEL_NAME = "Loyal"
DEFAULT_ENV_VAR = "LOYAL_API_KEY"
DEFAULT_HTTP_TIMEOUT = 30.0

SERVER_URL_ENV_VAR = "LOYAL_SERVER_URL"
HOME_ENV_VAR = "LOYAL_OPENCLAW_HOME"
HTTP_TIMEOUT_ENV_VAR = "LOYAL_HTTP_TIMEOUT"
OPENCLAW_CONFIG_ENV_VAR = "OPENCLAW_CONFIG_PATH"


@dataclass(frozen=True)
class SetupSettings:
    config_dir: Path
    openclaw_config_path: Path
    openclaw_env_path: Path
    default_server_url: str = DEFAULT_SERVER_URL
    provider: str = DEFAULT_PROVIDER
    model_name: str = DEFAULT_MODEL_NAME
    env_var_name: str = DEFAULT_ENV_VAR
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    openclaw_executable: str = "openclaw"

    @property
    def private_key_path(self) -> Path:
        return self.config_dir / "id_ed25519"

    @property
    def public_key_path(self) -> Path:
        return self.config_dir / "id_ed25519.pub"

    @property
    def local_config_path(self) -> Path:
        return self.config_dir / "config.json"


def normalize_server_url(url: str) -> str:
    trimmed = url.strip().rstrip("/")
    parts = urlsplit(trimmed)
    if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
        raise ConfigError(f'Server URL must include http:// or https:// (got "{url}")')
    return trimmed


def _parse_timeout(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{HTTP_TIMEOUT_ENV_VAR} must be a number of seconds") from exc
    if value <= 0:
        raise ConfigError(f"{HTTP_TIMEOUT_ENV_VAR} must be positive")
    return value


def load_settings(
    environ: Mapping[str, str] | None = None,
    home: str | Path | None = None,
) -> SetupSettings:
    env = os.environ if environ is None else environ
    home_dir = Path(home) if home else Path.home()

    config_dir_raw = (env.get(HOME_ENV_VAR) or "").strip()
    config_dir = Path(config_dir_raw).expanduser() if config_dir_raw else home_dir / ".loyal-openclaw"

    openclaw_config_raw = (env.get(OPENCLAW_CONFIG_ENV_VAR) or "").strip()
    if openclaw_config_raw:
        openclaw_config_path = Path(openclaw_config_raw).expanduser()
    else:
        openclaw_config_path = home_dir / ".openclaw" / "openclaw.json"

    server_url_raw = (env.get(SERVER_URL_ENV_VAR) or "").strip()
    default_server_url = normalize_server_url(server_url_raw or DEFAULT_SERVER_URL)

    timeout_raw = (env.get(HTTP_TIMEOUT_ENV_VAR) or "").strip()
    http_timeout = _parse_timeout(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT

    return SetupSettings(
        config_dir=config_dir,
        openclaw_config_path=openclaw_config_path,
        openclaw_env_path=home_dir / ".openclaw" / ".env",
        default_server_url=default_server_url,
        http_timeout=http_timeout,
    )


def load_local_config(settings: SetupSettings) -> dict[str, Any]:
    path = settings.local_config_path
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(
            f"invalid local config: {path} (fix or delete it, then re-run setup)"
        ) from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"local config must be a JSON object: {path}")
    return payload


def save_local_config(settings: SetupSettings, update: Mapping[str, Any]) -> dict[str, Any]:
    ensure_private_dir(settings.config_dir)
    merged = {**load_local_config(settings), **update}
    write_private_file(settings.local_config_path, dump_json(merged))
    return merged


def resolve_server_url(settings: SetupSettings, local_config: Mapping[str, Any]) -> str:
    stored = local_config.get("server_url")
    if isinstance(stored, str) and stored.strip():
        return normalize_server_url(stored)
    return settings.default_server_url
