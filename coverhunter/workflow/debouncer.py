"""
Selection debouncer

Coalesces rapid selection changes (arrow-key scrolling through the missing
list) into a single search launch after a quiet period. Cancelling the
running search is not debounced; it happens on every change.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3


class DebounceState(Enum):
    """Debouncer states"""
    IDLE = "idle"
    PENDING = "pending"
    FIRING = "firing"


class SelectionDebouncer:
    """
    Timer-based debounce of selection changes on the owning event loop.

    Every ``selection_changed()`` calls ``on_cancel`` and ``on_clear``
    immediately. A cleared selection skips the timer; otherwise the timer
    (re)starts and, once it expires undisturbed, the current selection is
    read from ``current_selection`` and passed to ``on_fire``.

    Must only be used from the thread running the event loop.

    Example:
        debouncer = SelectionDebouncer(
            current_selection=lambda: missing.selected_key,
            on_cancel=orchestrator.cancel_current,
            on_clear=display.clear,
            on_fire=launch_search,
        )
        debouncer.selection_changed()
    """

    def __init__(
        self,
        current_selection: Callable[[], Optional[str]],
        on_cancel: Callable[[], object],
        on_clear: Callable[[], object],
        on_fire: Callable[[str], object],
        interval: float = DEFAULT_DEBOUNCE_SECONDS,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        """
        Args:
            current_selection: Returns the selected key, or None
            on_cancel: Cancels the in-flight search
            on_clear: Clears the display list
            on_fire: Launches a search for the given key
            interval: Quiet period in seconds
            loop: Owning loop (defaults to the running loop on first use)
        """
        self.current_selection = current_selection
        self.on_cancel = on_cancel
        self.on_clear = on_clear
        self.on_fire = on_fire
        self.interval = interval
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None
        self._state = DebounceState.IDLE
        self.fire_count = 0

    @property
    def state(self) -> DebounceState:
        return self._state

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def selection_changed(self) -> None:
        """Handle a selection change (including the selection being cleared)."""
        self.on_cancel()
        self.on_clear()
        self._cancel_timer()

        if self.current_selection() is None:
            self._state = DebounceState.IDLE
            logger.debug("Selection cleared, debounce skipped")
            return

        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._timer = loop.call_later(self.interval, self._fire)
        self._state = DebounceState.PENDING

    def _fire(self) -> None:
        self._timer = None
        self._state = DebounceState.FIRING
        key = self.current_selection()
        self._state = DebounceState.IDLE

        if key is None:
            return

        self.fire_count += 1
        logger.debug(f"Debounce elapsed, searching for '{key}'")
        try:
            self.on_fire(key)
        except Exception as e:
            logger.error(f"Search launch failed for '{key}': {e}", exc_info=True)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def shutdown(self) -> None:
        """Cancel any pending timer."""
        self._cancel_timer()
        self._state = DebounceState.IDLE
