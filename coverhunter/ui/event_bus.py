"""Event bus for core-to-UI notifications.

Components publish immutable events; subscribers are delivered in order by
a single processing task on the owning event loop, so handlers never run
concurrently with each other or with a core mutation.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


class EventBus:
    """Publish-subscribe channel from the core to any number of observers.

    Publishing never blocks the publisher: events are queued and delivered
    by ``process_events()``, which should run as a background task on the
    owning loop. A failing handler is logged and does not stop delivery to
    the others.

    Example:
        >>> bus = EventBus()
        >>> bus.subscribe(StatusChangedEvent, lambda e: print(e.message))
        >>> task = asyncio.create_task(bus.process_events())
        >>> bus.publish_nowait(StatusChangedEvent("Ready"))
    """

    def __init__(self):
        self._subscribers: dict[type, list[Callable]] = defaultdict(list)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._processing: bool = False
        self._event_count: int = 0
        self._error_count: int = 0

    def subscribe(self, event_type: type, callback: Callable) -> None:
        """Subscribe to events of a specific type.

        Args:
            event_type: The event class to subscribe to
            callback: Sync or async callable taking the event
        """
        self._subscribers[event_type].append(callback)
        logger.debug(f"Subscribed to {event_type.__name__} (total subscribers: {len(self._subscribers[event_type])})")

    def unsubscribe(self, event_type: type, callback: Callable) -> None:
        """Remove a subscription; unknown callbacks are logged and ignored."""
        try:
            self._subscribers[event_type].remove(callback)
            logger.debug(f"Unsubscribed from {event_type.__name__}")
        except ValueError:
            logger.warning(f"Callback not found for {event_type.__name__}")

    async def publish(self, event: Any) -> None:
        """Publish an event from async code on the owning loop."""
        await self._queue.put(event)

    def publish_nowait(self, event: Any) -> None:
        """Publish an event from synchronous code running on the owning loop."""
        self._queue.put_nowait(event)

    def publish_sync(self, event: Any) -> None:
        """Publish an event from any thread.

        Worker threads (watchdog observer, conversion workers, log handlers)
        use this; the event is handed to the owning loop thread-safely.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"No event loop bound, dropping {type(event).__name__}")
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            self._queue.put_nowait(event)
        else:
            loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def process_events(self) -> None:
        """Deliver queued events to subscribers until stopped or cancelled."""
        self._loop = asyncio.get_running_loop()
        self._processing = True
        logger.debug("Event bus processing started")

        try:
            while self._processing:
                event = await self._queue.get()
                try:
                    await self._dispatch(event)
                finally:
                    self._queue.task_done()
        except asyncio.CancelledError:
            logger.debug("Event bus processing cancelled")
            raise
        finally:
            self._processing = False

    async def _dispatch(self, event: Any) -> None:
        event_type = type(event)
        self._event_count += 1

        for callback in list(self._subscribers.get(event_type, [])):
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    result = callback(event)
                    if inspect.isawaitable(result):
                        await result
            except Exception as e:
                self._error_count += 1
                logger.error(
                    f"Error in event handler for {event_type.__name__}: {e}",
                    exc_info=True
                )

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind the owning loop before processing starts (for publish_sync)."""
        self._loop = loop

    async def drain(self, timeout: float = 1.0) -> None:
        """Wait until every queued event has been delivered."""
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Event queue still has {self._queue.qsize()} events after {timeout}s")

    async def stop(self) -> None:
        """Stop processing, delivering what is queued first (with a timeout)."""
        logger.debug("Stopping event bus...")
        if self._processing:
            await self.drain()
        self._processing = False

        # Drop anything that did not make it
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
                self._queue.task_done()
            except asyncio.QueueEmpty:
                break

        stats = self.get_stats()
        logger.debug(
            f"Event bus stopped. Processed {stats['events_processed']} events "
            f"with {stats['errors']} errors"
        )

    def get_stats(self) -> dict[str, int]:
        """
        Returns:
            Dictionary with 'events_processed', 'errors', 'queue_size', 'subscriber_count'
        """
        return {
            'events_processed': self._event_count,
            'errors': self._error_count,
            'queue_size': self._queue.qsize(),
            'subscriber_count': sum(len(callbacks) for callbacks in self._subscribers.values())
        }

    @property
    def is_processing(self) -> bool:
        return self._processing
