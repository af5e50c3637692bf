"""
Configuration management and loading.

Handles the plugin settings supplied by the host or read from YAML.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

# Host configuration uses camelCase keys; YAML files use snake_case.
_CAMEL_CASE_KEYS = {
    "dailyTokenLimit": "daily_token_limit",
    "showToastOnIdle": "show_toast_on_idle",
    "toastDuration": "toast_duration",
    "progressBarWidth": "progress_bar_width",
}


@dataclass(frozen=True)
class PluginConfig:
    """Settings for the quota plugin."""
    daily_token_limit: int = 1_000_000
    show_toast_on_idle: bool = True
    toast_duration: int = 5000  # milliseconds
    progress_bar_width: int = 20

    def __post_init__(self):
        """Validate settings are in range."""
        if self.daily_token_limit <= 0:
            raise ValueError("daily_token_limit must be > 0")
        if self.toast_duration < 0:
            raise ValueError("toast_duration must be >= 0")
        if self.progress_bar_width <= 0:
            raise ValueError("progress_bar_width must be > 0")


DEFAULT_CONFIG = PluginConfig()


def config_from_mapping(data: Optional[Mapping[str, Any]]) -> PluginConfig:
    """Build a PluginConfig from a mapping of settings.

    Accepts snake_case keys and the host's camelCase spelling. Keys that are
    not given keep their defaults.

    Args:
        data: Settings mapping, or None for defaults

    Returns:
        Validated PluginConfig

    Raises:
        ValueError: If a key is unknown or a value has the wrong type
    """
    if not data:
        return DEFAULT_CONFIG

    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        normalized[_CAMEL_CASE_KEYS.get(key, key)] = value

    allowed_keys = set(_CAMEL_CASE_KEYS.values())
    unknown_keys = set(normalized.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    for key in ("daily_token_limit", "toast_duration", "progress_bar_width"):
        if key in normalized:
            value = normalized[key]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"'{key}' must be an integer")

    if "show_toast_on_idle" in normalized and not isinstance(normalized["show_toast_on_idle"], bool):
        raise ValueError("'show_toast_on_idle' must be a boolean")

    return PluginConfig(**normalized)


def load_plugin_config(path: str) -> PluginConfig:
    """Load and validate plugin configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated PluginConfig; an empty file yields the defaults

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Plugin config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return DEFAULT_CONFIG
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    return config_from_mapping(raw_config)
