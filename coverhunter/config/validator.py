"""Configuration validation."""

import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Configuration validation errors."""
    pass


VALID_PROVIDERS = ['Google', 'BingWeb', 'GoogleWeb']
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    All problems are collected and reported together.

    Args:
        config: Configuration dictionary from loader

    Raises:
        ValidationError: If configuration is invalid
    """
    errors = []

    errors.extend(_validate_providers(config.get('providers', {})))
    errors.extend(_validate_search(config.get('search', {})))
    errors.extend(_validate_paths(config.get('paths', {})))
    errors.extend(_validate_scanner(config.get('scanner', {})))
    errors.extend(_validate_display(config.get('display', {})))
    errors.extend(_validate_watch(config.get('watch', {})))
    errors.extend(_validate_api(config.get('api', {})))
    errors.extend(_validate_logging(config.get('logging', {})))

    if errors:
        raise ValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )


def _validate_providers(section: Dict[str, Any]) -> List[str]:
    """Validate provider credentials section."""
    errors = []
    if not isinstance(section, dict):
        return ["providers must be a dictionary"]

    google = section.get('google', {})
    if not isinstance(google, dict):
        errors.append("providers.google must be a dictionary")
        return errors

    # Credentials may be empty; a missing key is handled interactively at search time
    for key in ('api_key', 'search_engine_id'):
        value = google.get(key, '')
        if value is not None and not isinstance(value, str):
            errors.append(f"providers.google.{key} must be a string")

    return errors


def _validate_search(section: Dict[str, Any]) -> List[str]:
    """Validate search options section."""
    errors = []
    if not isinstance(section, dict):
        return ["search must be a dictionary"]

    provider = section.get('provider', 'Google')
    if provider not in VALID_PROVIDERS:
        errors.append(f"search.provider must be one of: {', '.join(VALID_PROVIDERS)}")

    debounce = section.get('debounce_ms', 300)
    if not isinstance(debounce, int) or isinstance(debounce, bool):
        errors.append("search.debounce_ms must be an integer")
    elif debounce < 0 or debounce > 5000:
        errors.append("search.debounce_ms must be between 0 and 5000")

    if not isinstance(section.get('use_mame_descriptions', False), bool):
        errors.append("search.use_mame_descriptions must be a boolean")

    extra = section.get('extra_query', '')
    if extra is not None and not isinstance(extra, str):
        errors.append("search.extra_query must be a string")

    return errors


def _validate_paths(section: Dict[str, Any]) -> List[str]:
    """Validate paths section. Paths are optional; existence is checked at scan time."""
    errors = []
    if not isinstance(section, dict):
        return ["paths must be a dictionary"]

    for key in ('roms', 'covers', 'mame_xml'):
        value = section.get(key, '')
        if value is not None and not isinstance(value, str):
            errors.append(f"paths.{key} must be a string")

    return errors


def _validate_scanner(section: Dict[str, Any]) -> List[str]:
    """Validate scanner section."""
    errors = []
    if not isinstance(section, dict):
        return ["scanner must be a dictionary"]

    extensions = section.get('supported_extensions', [])
    if not isinstance(extensions, list):
        errors.append("scanner.supported_extensions must be a list")
    elif any(not isinstance(ext, str) or not ext.strip() for ext in extensions):
        errors.append("scanner.supported_extensions entries must be non-empty strings")

    return errors


def _validate_display(section: Dict[str, Any]) -> List[str]:
    """Validate display section."""
    errors = []
    if not isinstance(section, dict):
        return ["display must be a dictionary"]

    size = section.get('thumbnail_size', 300)
    if not isinstance(size, int) or isinstance(size, bool):
        errors.append("display.thumbnail_size must be an integer")
    elif size < 50 or size > 1000:
        errors.append("display.thumbnail_size must be between 50 and 1000")

    return errors


def _validate_watch(section: Dict[str, Any]) -> List[str]:
    """Validate watch section."""
    errors = []
    if not isinstance(section, dict):
        return ["watch must be a dictionary"]

    timeout = section.get('readable_timeout', 10.0)
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        errors.append("watch.readable_timeout must be a positive number")

    queue_size = section.get('queue_size', 256)
    if not isinstance(queue_size, int) or isinstance(queue_size, bool) or queue_size < 1:
        errors.append("watch.queue_size must be a positive integer")

    return errors


def _validate_api(section: Dict[str, Any]) -> List[str]:
    """Validate API section."""
    errors = []
    if not isinstance(section, dict):
        return ["api must be a dictionary"]

    timeout = section.get('request_timeout', 30)
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool):
        errors.append("api.request_timeout must be a number")
    elif timeout < 1 or timeout > 300:
        errors.append("api.request_timeout must be between 1 and 300 seconds")

    retries = section.get('max_retries', 3)
    if not isinstance(retries, int) or isinstance(retries, bool):
        errors.append("api.max_retries must be an integer")
    elif retries < 1 or retries > 10:
        errors.append("api.max_retries must be between 1 and 10")

    return errors


def _validate_logging(section: Dict[str, Any]) -> List[str]:
    """Validate logging section."""
    errors = []
    if not isinstance(section, dict):
        return ["logging must be a dictionary"]

    level = section.get('level', 'INFO')
    if not isinstance(level, str) or level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"logging.level must be one of: {', '.join(VALID_LOG_LEVELS)}")

    if not isinstance(section.get('console', True), bool):
        errors.append("logging.console must be a boolean")

    log_file = section.get('file', '')
    if log_file is not None and not isinstance(log_file, str):
        errors.append("logging.file must be a string")

    return errors
