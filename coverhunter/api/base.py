"""Image provider interface and shared result types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from coverhunter.workflow.cancellation import CancellationToken


PLACEHOLDER_NAME = "No Cover Image Found"


class ProviderId(Enum):
    """Image search backends that return result lists."""
    GOOGLE = "Google"

    @classmethod
    def parse(cls, value: str) -> "ProviderId":
        """
        Look up a provider by value or name, case-insensitively.

        Raises:
            ValueError: If no provider matches
        """
        for provider in cls:
            if value.lower() in (provider.value.lower(), provider.name.lower()):
                return provider
        valid = ', '.join(p.value for p in cls)
        raise ValueError(f"Unknown image provider '{value}' (valid: {valid})")


@dataclass(frozen=True)
class ImageDescriptor:
    """
    One candidate cover image returned by a provider.

    Attributes:
        source_url: Full-size image URL (None for the placeholder entry)
        display_name: Human-readable name for the candidate
        byte_size: Image size in bytes, 0 if unknown
        width: Image width in pixels, 0 if unknown
        height: Image height in pixels, 0 if unknown
        mime_type: MIME type reported by the provider
    """
    source_url: Optional[str]
    display_name: str = "Unknown Filename"
    byte_size: int = 0
    width: int = 0
    height: int = 0
    mime_type: str = "Unknown Encoding Format"

    @property
    def size_label(self) -> str:
        """Byte size rendered in KB, e.g. ``'12.5 KB'``."""
        if self.byte_size <= 0:
            return "Unknown File Size"
        return f"{round(self.byte_size / 1024.0, 2)} KB"

    @property
    def is_placeholder(self) -> bool:
        return self.source_url is None

    @classmethod
    def placeholder(cls) -> "ImageDescriptor":
        """Entry shown when a search found nothing."""
        return cls(source_url=None, display_name=PLACEHOLDER_NAME, mime_type="")


class ImageProvider(ABC):
    """
    A pluggable image search backend.

    Implementations fetch candidate images for a text query. They must
    forward the cancellation token to every await that can block, and
    report failures with the exceptions in ``coverhunter.api.error_handler``.
    """

    provider_id: ProviderId
    requires_credential: bool = True

    @property
    def name(self) -> str:
        return self.provider_id.value

    @abstractmethod
    async def fetch(self, query: str, token: "CancellationToken") -> List[ImageDescriptor]:
        """
        Fetch candidate images for a query.

        Raises:
            NoCredentialError: Credential missing
            ProviderError: Any other provider failure
            SearchCancelled: Token cancelled while waiting
        """


class ProviderRegistry:
    """Maps provider IDs to provider instances."""

    def __init__(self, providers: Optional[Iterable[ImageProvider]] = None):
        self._providers: Dict[ProviderId, ImageProvider] = {}
        for provider in providers or ():
            self.register(provider)

    def register(self, provider: ImageProvider) -> None:
        self._providers[provider.provider_id] = provider

    def get(self, provider_id: ProviderId) -> ImageProvider:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise KeyError(f"No image provider registered for {provider_id.value}")

    def __contains__(self, provider_id: ProviderId) -> bool:
        return provider_id in self._providers
