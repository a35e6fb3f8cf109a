"""App configuration (LLM connection, story request, autosave interval).

Stored as config.json in the data directory. get_config() returns defaults
merged with stored values; the LLM connection defaults come from the
environment (.env is loaded by the app), so a stored value always wins.
update_config() applies partial updates — llm_connection and story merged
key-by-key, scalars overwritten.
"""

import json
import os
from pathlib import Path
from typing import Any

from storyloom.generator import DEFAULT_GENRE
from storyloom.persistence import AUTOSAVE_INTERVAL

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connection": {
        "provider_url": "https://generativelanguage.googleapis.com",
        "api_key": "",
        "provider_format": "gemini",
        "model": "gemini-2.5-flash",
        "timeout": 120.0,
        "temperature": 0.8,
    },
    "story": {
        "genre": DEFAULT_GENRE,
        "min_characters": 2,
        "max_characters": 4,
        "prompt": "",
    },
    "autosave_interval_seconds": AUTOSAVE_INTERVAL,
}

_ENV_CONNECTION_KEYS = {
    "provider_url": "LLM_PROVIDER_URL",
    "api_key": "LLM_API_KEY",
    "provider_format": "LLM_PROVIDER_FORMAT",
    "model": "LLM_MODEL",
}


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def _defaults() -> dict[str, Any]:
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    for key, env_name in _ENV_CONNECTION_KEYS.items():
        value = os.getenv(env_name, "")
        if value:
            config["llm_connection"][key] = value
    return config


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    for group in ("llm_connection", "story"):
        vals = fields.get(group)
        if isinstance(vals, dict):
            config[group].update(
                {k: v for k, v in vals.items() if k in config[group]}
            )
    if "autosave_interval_seconds" in fields:
        config["autosave_interval_seconds"] = fields["autosave_interval_seconds"]


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = _defaults()
    path = _config_path(data_dir)
    if path.is_file():
        _merge(config, json.loads(path.read_text()))
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config(data_dir)
    _merge(config, fields)
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(config, indent=2))
    return config
