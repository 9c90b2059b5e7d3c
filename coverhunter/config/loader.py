"""Configuration loading and parsing."""

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_NAME = "coverhunter.yaml"

DEFAULT_SUPPORTED_EXTENSIONS = [
    "zip", "rar", "7z", "gba", "gb", "gbc", "nes", "snes", "sfc", "smc",
    "md", "smd", "gen", "32x", "sgg", "sg", "sc", "ms", "gg", "rom", "bin"
]

DEFAULT_CONFIG: Dict[str, Any] = {
    'providers': {
        'google': {
            'api_key': '',
            'search_engine_id': 'd30e97188f5914611',
        },
    },
    'search': {
        'provider': 'Google',
        'extra_query': '',
        'debounce_ms': 300,
        'use_mame_descriptions': False,
    },
    'paths': {
        'roms': '',
        'covers': '',
        'mame_xml': '',
    },
    'scanner': {
        'supported_extensions': list(DEFAULT_SUPPORTED_EXTENSIONS),
    },
    'display': {
        'thumbnail_size': 300,
    },
    'watch': {
        'readable_timeout': 10.0,
        'queue_size': 256,
    },
    'api': {
        'request_timeout': 30,
        'max_retries': 3,
    },
    'logging': {
        'level': 'INFO',
        'console': True,
        'file': '',
    },
}


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


def default_config() -> Dict[str, Any]:
    """Return a fresh copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge ``override`` into a copy of ``base``.

    Nested dictionaries are merged key by key; any other value in
    ``override`` replaces the one in ``base``.
    """
    result: Dict[str, Any] = copy.deepcopy(base)
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = merge_config(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    """Resolve the config file path, defaulting to ./coverhunter.yaml."""
    if config_path is None:
        return Path.cwd() / DEFAULT_CONFIG_NAME
    return Path(config_path).expanduser()


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and parse a configuration file, filling in defaults.

    Args:
        config_path: Path to the YAML file. If None, uses ./coverhunter.yaml.

    Returns:
        Parsed configuration merged over the defaults

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    config_path = resolve_config_path(config_path)

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}\n"
            f"Copy coverhunter.yaml.example to {DEFAULT_CONFIG_NAME} and configure it."
        )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {e}")

    # An empty file is a valid, all-defaults configuration
    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise ConfigError("Configuration file must contain a YAML dictionary")

    return merge_config(DEFAULT_CONFIG, config)


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., 'search.provider')
        default: Default value if path not found

    Returns:
        Configuration value or default

    Example:
        >>> get_config_value(config, 'display.thumbnail_size')
        300
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value
