"""Observable display state: candidate images, status line, query label."""

import logging
from typing import Optional, Sequence, Tuple

from coverhunter.api.base import ImageDescriptor
from coverhunter.ui.event_bus import EventBus
from coverhunter.ui.events import DisplayListChangedEvent, StatusChangedEvent

logger = logging.getLogger(__name__)

IDLE_STATUS = "Ready"
SEARCHING_STATUS = "Searching for covers..."
ALL_FOUND_STATUS = "All covers found!"


class DisplayState:
    """
    Authoritative copy of what the UI shows for the current selection.

    Every replacement of the image list is a single assignment of a new
    tuple followed by one ``DisplayListChangedEvent``; observers never see
    a half-filled list. Must be mutated on the owning event loop only.
    """

    def __init__(self, event_bus: Optional[EventBus] = None, thumbnail_size: int = 300):
        self.event_bus = event_bus
        self.thumbnail_size = thumbnail_size
        self.images: Tuple[ImageDescriptor, ...] = ()
        self.query_label = ""
        self.status = IDLE_STATUS
        self.is_searching = False

    def clear(self) -> None:
        """Empty the image list, keeping the status line."""
        if not self.images and not self.query_label:
            return
        self.images = ()
        self.query_label = ""
        self._emit_list()

    def reset_idle(self, status: str = IDLE_STATUS) -> None:
        """Return to the idle baseline: no images, not searching."""
        self.clear()
        self.set_status(status, is_searching=False)

    def begin_search(self, query: str) -> None:
        self.clear()
        self.set_status(SEARCHING_STATUS, is_searching=True)
        logger.debug(f"Searching: {query}")

    def publish_results(
        self,
        images: Sequence[ImageDescriptor],
        query: str,
        provider_name: str
    ) -> None:
        """
        Replace the image list with a completed search result.

        An empty result is shown as a single placeholder entry.
        """
        count = len(images)
        self.images = tuple(images) if images else (ImageDescriptor.placeholder(),)
        self.query_label = f"{query} (Fetched {count} images from {provider_name})"
        self._emit_list()
        self.set_status(f"Found {count} images.", is_searching=False)

    def fail(self, message: str) -> None:
        """Show a failed search: placeholder entry plus the cause."""
        self.images = (ImageDescriptor.placeholder(),)
        self._emit_list()
        self.set_status(message, is_searching=False)

    def set_status(self, message: str, is_searching: bool = False) -> None:
        self.status = message
        self.is_searching = is_searching
        if self.event_bus is not None:
            self.event_bus.publish_nowait(StatusChangedEvent(message, is_searching))

    def _emit_list(self) -> None:
        if self.event_bus is not None:
            self.event_bus.publish_nowait(
                DisplayListChangedEvent(self.images, self.query_label, self.thumbnail_size)
            )
