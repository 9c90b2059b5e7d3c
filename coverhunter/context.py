"""Application context: the long-lived objects shared by all components."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

from coverhunter import __version__
from coverhunter.api.base import ProviderRegistry
from coverhunter.api.google import GoogleImageProvider
from coverhunter.config.settings import SettingsStore
from coverhunter.media.downloader import ImageSaver
from coverhunter.ui.event_bus import EventBus

logger = logging.getLogger(__name__)


def create_http_client(timeout: float = 30.0, max_connections: int = 4) -> httpx.AsyncClient:
    """
    Create the shared HTTP client.

    Args:
        timeout: Read timeout in seconds
        max_connections: Connection pool size

    Returns:
        Configured httpx.AsyncClient
    """
    limits = httpx.Limits(
        max_connections=max_connections,
        max_keepalive_connections=max_connections,
        keepalive_expiry=30.0,
    )
    timeout_config = httpx.Timeout(connect=10.0, read=timeout, write=10.0, pool=5.0)

    client = httpx.AsyncClient(
        timeout=timeout_config,
        limits=limits,
        follow_redirects=True,
        headers={'User-Agent': f'coverhunter/{__version__}'},
    )
    logger.debug(f"HTTP client created: max_connections={max_connections}, timeout={timeout}s")
    return client


@dataclass
class AppContext:
    """
    Objects created once at startup and torn down at shutdown.

    Passed explicitly to whatever needs settings, the event bus or the
    HTTP client; nothing in the package reaches for globals.
    """
    settings: SettingsStore
    event_bus: EventBus = field(default_factory=EventBus)
    http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def create(cls, settings_path: Path) -> "AppContext":
        settings = SettingsStore(settings_path)
        settings.load()
        return cls(settings=settings)

    def client(self) -> httpx.AsyncClient:
        """Shared HTTP client, created on first use (needs a running loop)."""
        if self.http_client is None:
            self.http_client = create_http_client(timeout=self.settings.request_timeout)
        return self.http_client

    def build_registry(self) -> ProviderRegistry:
        google = GoogleImageProvider(
            self.settings,
            self.client(),
            request_timeout=self.settings.request_timeout
        )
        return ProviderRegistry([google])

    def build_saver(self) -> ImageSaver:
        return ImageSaver(
            self.client(),
            timeout=self.settings.request_timeout,
            max_retries=self.settings.max_retries
        )

    async def close(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
            logger.debug("HTTP client closed")
