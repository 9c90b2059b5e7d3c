"""
Missing-cover list and its mutator

The missing set is the ordered list of ROMs without a cover. It is owned
by the event loop: every mutation happens on the loop thread. Watcher
threads hand their events to the loop through a queue first.
"""

import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from coverhunter.scanner.rom_types import RomEntry, rom_key
from coverhunter.ui.event_bus import EventBus
from coverhunter.ui.events import MissingSetChangedEvent, SelectionChangedEvent
from coverhunter.workflow.display import ALL_FOUND_STATUS, DisplayState

logger = logging.getLogger(__name__)


class MissingSet:
    """
    Ordered, observable list of RomEntry with case-insensitive key lookup
    and a single selected entry.

    Selection listeners are called synchronously after the selection
    changes; events go to the event bus for any other observer.
    """

    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus
        self._entries: List[RomEntry] = []
        self._index: Dict[str, int] = {}
        self._selected: Optional[int] = None
        self._selection_listeners: List[Callable[[], None]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RomEntry]:
        return iter(list(self._entries))

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and rom_key(key) in self._index

    @property
    def entries(self) -> Tuple[RomEntry, ...]:
        return tuple(self._entries)

    @property
    def names(self) -> List[str]:
        return [entry.name for entry in self._entries]

    def get(self, key: str) -> Optional[RomEntry]:
        index = self._index.get(rom_key(key))
        return self._entries[index] if index is not None else None

    def index_of(self, key: str) -> Optional[int]:
        return self._index.get(rom_key(key))

    def reset(self, entries: Iterable[RomEntry]) -> None:
        """Replace the whole list (after a scan). Selection is cleared."""
        self._entries = []
        seen = set()
        for entry in entries:
            if entry.key not in seen:
                seen.add(entry.key)
                self._entries.append(entry)
        self._reindex()
        logger.info(f"Missing set reset: {len(self._entries)} entries")
        self._publish(MissingSetChangedEvent('reset', len(self._entries)))
        self._set_selection(None)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @property
    def selected_index(self) -> Optional[int]:
        return self._selected

    @property
    def selected_entry(self) -> Optional[RomEntry]:
        return self._entries[self._selected] if self._selected is not None else None

    @property
    def selected_key(self) -> Optional[str]:
        entry = self.selected_entry
        return entry.key if entry else None

    def add_selection_listener(self, listener: Callable[[], None]) -> None:
        self._selection_listeners.append(listener)

    def select(self, key: Optional[str]) -> bool:
        """
        Select an entry by key, or clear the selection with None.

        Returns:
            False if the key is not in the set
        """
        if key is None:
            self._set_selection(None)
            return True
        index = self.index_of(key)
        if index is None:
            logger.debug(f"Cannot select '{key}': not in missing set")
            return False
        self._set_selection(index)
        return True

    def select_index(self, index: Optional[int]) -> bool:
        if index is None:
            self._set_selection(None)
            return True
        if not 0 <= index < len(self._entries):
            return False
        self._set_selection(index)
        return True

    def _set_selection(self, index: Optional[int], force: bool = False) -> None:
        if index == self._selected and not force:
            return
        self._selected = index
        key = self.selected_key
        self._publish(SelectionChangedEvent(key, index))
        for listener in list(self._selection_listeners):
            listener()

    # ------------------------------------------------------------------
    # Removal (through MissingSetMutator)
    # ------------------------------------------------------------------

    def _remove_at(self, index: int) -> RomEntry:
        entry = self._entries.pop(index)
        self._reindex()
        if self._selected is not None and self._selected > index:
            # Same entry stays selected, one slot up
            self._selected -= 1
        elif self._selected == index:
            # Selection now dangles until the mutator re-selects
            self._selected = None
        self._publish(MissingSetChangedEvent('removed', len(self._entries), entry.key, entry.name, index))
        return entry

    def _reindex(self) -> None:
        self._index = self._index_for(self._entries)

    @staticmethod
    def _index_for(entries: List[RomEntry]) -> Dict[str, int]:
        return {entry.key: i for i, entry in enumerate(entries)}

    def _publish(self, event) -> None:
        if self.event_bus is not None:
            self.event_bus.publish_nowait(event)


class MissingSetMutator:
    """
    Removes entries from the missing set and re-selects afterwards.

    Removal is idempotent: the watcher and the user may both remove the
    same entry, and the second call just returns False.

    After removing the selected entry the entry now at the same index is
    selected, or the previous one if the removed entry was last. When the
    set becomes empty the selection is cleared, the in-flight search is
    cancelled and the display returns to its idle state.
    """

    def __init__(
        self,
        missing_set: MissingSet,
        display: DisplayState,
        cancel_search: Callable[[], object]
    ):
        self.missing_set = missing_set
        self.display = display
        self.cancel_search = cancel_search

    def remove(self, key: str) -> bool:
        """
        Remove an entry. Call on the owning loop.

        Returns:
            True if the entry was present and removed
        """
        missing = self.missing_set
        index = missing.index_of(key)
        if index is None:
            logger.debug(f"'{key}' already removed from missing set")
            return False

        was_selected = missing.selected_index == index
        entry = missing._remove_at(index)
        logger.info(f"Removed '{entry.name}' from missing set ({len(missing)} remaining)")

        if len(missing) == 0:
            if was_selected:
                missing._set_selection(None, force=True)
            self.cancel_search()
            self.display.reset_idle(ALL_FOUND_STATUS)
            return True

        if was_selected:
            # Notify even when the new index equals the old one
            missing._set_selection(min(index, len(missing) - 1), force=True)

        return True

