"""Event types for UI updates.

Every state change in the core is announced with one of these immutable
dataclasses on the event bus. A UI (or a test) subscribes to the types it
cares about; the core never talks to a presentation layer directly.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Tuple

from coverhunter.api.base import ImageDescriptor


@dataclass(frozen=True)
class MissingSetChangedEvent:
    """Emitted when the missing-cover list changes.

    Attributes:
        action: 'reset' after a scan, 'removed' when one entry leaves the list
        total: Number of entries after the change
        key: Removed entry key ('removed' only)
        name: Removed entry display name ('removed' only)
        index: Index the removed entry occupied ('removed' only)
    """
    action: Literal['reset', 'removed']
    total: int
    key: Optional[str] = None
    name: Optional[str] = None
    index: Optional[int] = None


@dataclass(frozen=True)
class SelectionChangedEvent:
    """Emitted when the selected missing entry changes (None = cleared)."""
    key: Optional[str]
    index: Optional[int]


@dataclass(frozen=True)
class DisplayListChangedEvent:
    """Emitted when the candidate image list is replaced or cleared.

    Attributes:
        images: New display list (empty when cleared)
        query_label: Description of the query that produced the list
        thumbnail_size: Thumbnail edge length the UI should render at
    """
    images: Tuple[ImageDescriptor, ...]
    query_label: str
    thumbnail_size: int


@dataclass(frozen=True)
class StatusChangedEvent:
    """Emitted when the one-line status text changes."""
    message: str
    is_searching: bool = False


@dataclass(frozen=True)
class SearchStartedEvent:
    """Emitted when a debounced search is dispatched to a provider."""
    rom_key: str
    query: str
    provider: str


@dataclass(frozen=True)
class SearchFailedEvent:
    """Emitted when a live search fails with a provider error.

    Attributes:
        rom_key: Entry the search was for
        provider: Provider display name
        category: ErrorCategory value ('transient' or 'fatal')
        message: Human-readable cause, suitable for a one-line dialog
    """
    rom_key: str
    provider: str
    category: str
    message: str


@dataclass(frozen=True)
class CoverSavedEvent:
    """Emitted when a cover lands on disk for a missing entry.

    Attributes:
        rom_key: Entry the cover belongs to
        path: Canonical cover path
        source: How it arrived
    """
    rom_key: str
    path: str
    source: Literal['download', 'converted', 'dropped']


@dataclass(frozen=True)
class ConversionFailedEvent:
    """Emitted when the watcher could not normalize a new cover file."""
    rom_key: str
    path: str
    reason: str


@dataclass(frozen=True)
class LogEntryEvent:
    """Emitted for log messages.

    Attributes:
        level: Logging level (logging.DEBUG, INFO, WARNING, ERROR, CRITICAL)
        message: Formatted log message
        timestamp: When the log was generated
    """
    level: int
    message: str
    timestamp: datetime
