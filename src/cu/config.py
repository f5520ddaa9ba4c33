"""
Config loading for cu.

The config file lives at $XDG_CONFIG_HOME/cu/config.json (or
~/.config/cu/config.json) and holds `apiToken` and `teamId`. CU_API_TOKEN
and CU_TEAM_ID override the file and work without one.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from cu.errors import CuError

VALID_KEYS = ("apiToken", "teamId")
TOKEN_PREFIX = "pk_"


class ConfigError(CuError):
    """Raised when the config is missing, unreadable or invalid."""
    pass


@dataclass
class Config:
    api_token: str
    team_id: str


def load_env(path: Optional[str] = None) -> None:
    """Load a .env file into the environment without overriding existing vars."""
    if path:
        load_dotenv(path, override=False)
    else:
        found = find_dotenv(usecwd=True)
        if found:
            load_dotenv(found, override=False)


def config_dir() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "cu"


def config_path() -> Path:
    return config_dir() / "config.json"


def load_raw_config() -> Dict[str, Any]:
    """Read the config file, or {} when it does not exist."""
    path = config_path()
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file at {path} contains invalid JSON: {e.msg}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file at {path} contains invalid JSON: expected an object")
    return data


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def load_config() -> Config:
    """Merge the config file with env overrides and validate the result."""
    raw = load_raw_config()
    token = _clean(os.getenv("CU_API_TOKEN") or raw.get("apiToken"))
    team_id = _clean(os.getenv("CU_TEAM_ID") or raw.get("teamId"))

    if not token:
        raise ConfigError(
            f"Config missing required field: apiToken. Set CU_API_TOKEN or add it to {config_path()}"
        )
    if not token.startswith(TOKEN_PREFIX):
        raise ConfigError("Config apiToken must start with pk_.")
    if not team_id:
        raise ConfigError(
            f"Config missing required field: teamId. Set CU_TEAM_ID or add it to {config_path()}"
        )
    return Config(api_token=token, team_id=team_id)


def get_config_value(key: str) -> Optional[str]:
    """Return one config value (env override first), or None if unset."""
    if key not in VALID_KEYS:
        raise ConfigError(f"Unknown config key: {key}. Valid keys: {', '.join(VALID_KEYS)}")
    env_name = "CU_API_TOKEN" if key == "apiToken" else "CU_TEAM_ID"
    value = _clean(os.getenv(env_name) or load_raw_config().get(key))
    return value or None
