"""Persistent settings store and credential store."""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from coverhunter.api.base import ProviderId
from coverhunter.config.loader import (
    ConfigError,
    DEFAULT_SUPPORTED_EXTENSIONS,
    default_config,
    get_config_value,
    load_config,
)
from coverhunter.config.validator import ValidationError, validate_config

logger = logging.getLogger(__name__)


class SettingsStore:
    """
    Thread-safe settings document backed by a YAML file.

    A missing file is created with defaults. A file that cannot be parsed
    or fails validation is logged and replaced by defaults, so the
    application always starts with a usable configuration.

    The store also answers credential questions for image providers
    (``has_credential`` / ``set_credential``).

    Example:
        settings = SettingsStore(Path('coverhunter.yaml'))
        settings.load()
        if not settings.has_credential(ProviderId.GOOGLE):
            settings.set_credential(ProviderId.GOOGLE, api_key='...')
    """

    def __init__(self, path: Path, config: Optional[Dict[str, Any]] = None):
        """
        Args:
            path: Settings file location
            config: Optional initial configuration (skips the need to load)
        """
        self.path = Path(path)
        self._lock = threading.Lock()
        self._config: Dict[str, Any] = config if config is not None else default_config()

    def load(self) -> Dict[str, Any]:
        """
        Load settings from disk.

        Returns:
            The active configuration dictionary
        """
        with self._lock:
            logger.info(f"Loading settings from {self.path}")

            if not self.path.exists():
                logger.info(f"{self.path.name} not found. Creating and saving default settings.")
                self._config = default_config()
                self._save_locked()
                return self._config

            try:
                config = load_config(str(self.path))
                validate_config(config)
            except (ConfigError, ValidationError) as e:
                logger.error(f"Error loading {self.path.name}. Reverting to defaults. Error: {e}")
                self._config = default_config()
                self._save_locked()
                return self._config

            self._config = config

            if not get_config_value(config, 'scanner.supported_extensions'):
                logger.info("Supported extensions list was empty, populating with defaults.")
                self._config['scanner']['supported_extensions'] = list(DEFAULT_SUPPORTED_EXTENSIONS)
                self._save_locked()

            logger.info("Settings loaded successfully.")
            return self._config

    def save(self) -> bool:
        """
        Write settings to disk.

        Returns:
            True if the file was written
        """
        with self._lock:
            return self._save_locked()

    def _save_locked(self) -> bool:
        logger.debug(f"Saving settings to {self.path}")
        temp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
            temp_path.replace(self.path)
        except OSError as e:
            logger.error(f"Error saving {self.path.name}: {e}")
            if temp_path.exists():
                temp_path.unlink()
            return False
        logger.info("Settings saved successfully.")
        return True

    @property
    def config(self) -> Dict[str, Any]:
        return self._config

    def get(self, path: str, default: Any = None) -> Any:
        with self._lock:
            return get_config_value(self._config, path, default)

    def set(self, path: str, value: Any, persist: bool = False) -> None:
        """
        Set a nested value using dot notation.

        Args:
            path: Dot-separated path (e.g., 'search.provider')
            value: New value
            persist: Save the file after updating
        """
        with self._lock:
            keys = path.split('.')
            node = self._config
            for key in keys[:-1]:
                node = node.setdefault(key, {})
            node[keys[-1]] = value
            if persist:
                self._save_locked()

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    @property
    def provider_name(self) -> str:
        return self.get('search.provider', 'Google')

    @property
    def extra_query(self) -> str:
        return self.get('search.extra_query', '') or ''

    @property
    def debounce_seconds(self) -> float:
        return self.get('search.debounce_ms', 300) / 1000.0

    @property
    def use_mame_descriptions(self) -> bool:
        return bool(self.get('search.use_mame_descriptions', False))

    @property
    def thumbnail_size(self) -> int:
        return self.get('display.thumbnail_size', 300)

    @property
    def supported_extensions(self) -> List[str]:
        return list(self.get('scanner.supported_extensions', []) or [])

    @property
    def readable_timeout(self) -> float:
        return float(self.get('watch.readable_timeout', 10.0))

    @property
    def watch_queue_size(self) -> int:
        return self.get('watch.queue_size', 256)

    @property
    def request_timeout(self) -> float:
        return float(self.get('api.request_timeout', 30))

    @property
    def max_retries(self) -> int:
        return self.get('api.max_retries', 3)

    @property
    def mame_xml_path(self) -> Optional[Path]:
        value = self.get('paths.mame_xml', '')
        return Path(value).expanduser() if value else None

    @property
    def google_api_key(self) -> str:
        return self.get('providers.google.api_key', '') or ''

    @property
    def google_search_engine_id(self) -> str:
        return self.get('providers.google.search_engine_id', '') or ''

    # ------------------------------------------------------------------
    # Credential store
    # ------------------------------------------------------------------

    def has_credential(self, provider_id: ProviderId) -> bool:
        """Check whether the provider's required credentials are configured."""
        if provider_id == ProviderId.GOOGLE:
            return bool(self.google_api_key and self.google_search_engine_id)
        return True

    def set_credential(
        self,
        provider_id: ProviderId,
        api_key: str,
        search_engine_id: Optional[str] = None
    ) -> bool:
        """
        Store provider credentials and save the settings file.

        Returns:
            True if the settings file was written
        """
        if provider_id != ProviderId.GOOGLE:
            raise ValueError(f"{provider_id.value} does not take credentials")

        with self._lock:
            google = self._config.setdefault('providers', {}).setdefault('google', {})
            google['api_key'] = api_key.strip()
            if search_engine_id:
                google['search_engine_id'] = search_engine_id.strip()
            logger.info(f"{provider_id.value} credentials updated")
            return self._save_locked()
