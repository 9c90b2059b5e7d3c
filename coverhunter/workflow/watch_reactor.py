"""
Cover directory watch

Images saved into the cover folder from a browser or file manager are
picked up here: canonical PNGs satisfy their entry directly, other raster
formats are converted to PNG first. Events arrive on the watchdog thread
and are handed to the event loop through a bounded queue; everything that
touches the missing set runs on the loop.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from coverhunter.media.converter import convert_to_canonical
from coverhunter.scanner.cover_matcher import cover_path, is_canonical, is_convertible
from coverhunter.scanner.rom_types import rom_key
from coverhunter.ui.event_bus import EventBus
from coverhunter.ui.events import ConversionFailedEvent, CoverSavedEvent
from coverhunter.workflow.missing_set import MissingSet, MissingSetMutator

logger = logging.getLogger(__name__)

DEFAULT_READABLE_TIMEOUT = 10.0


@dataclass(frozen=True)
class FileCreatedEvent:
    """A file appeared in the watched directory."""
    name: str
    full_path: Path


@dataclass
class PendingConversion:
    """A new cover file being made canonical for one missing entry."""
    key: str
    source_path: Path
    target_path: Path
    deadline: float


class WatchOutcome(Enum):
    """What the reactor did with one file event"""
    IGNORED = "ignored"        # not a missing entry, or not an image
    COALESCED = "coalesced"    # same entry already being processed
    REMOVED = "removed"        # canonical file arrived, entry removed
    CONVERTED = "converted"    # converted to canonical, entry removed
    TIMED_OUT = "timed_out"    # file never became readable
    FAILED = "failed"          # conversion failed, entry kept


def _file_size(path: Path) -> Optional[int]:
    """Size of the file if it can be opened for reading, else None."""
    try:
        with open(path, 'rb') as f:
            f.read(1)
            return os.fstat(f.fileno()).st_size
    except OSError:
        return None


async def wait_for_readable(
    path: Path,
    timeout: float = DEFAULT_READABLE_TIMEOUT,
    initial_delay: float = 0.01,
    max_delay: float = 0.2
) -> bool:
    """
    Poll until a newly created file is complete enough to read.

    The file counts as ready once it opens for reading, is non-empty, and
    its size did not change since the previous poll. Delays double from
    ``initial_delay`` up to ``max_delay``.

    Returns:
        True if the file became readable before ``timeout`` seconds
    """
    deadline = time.monotonic() + timeout
    delay = initial_delay
    last_size: Optional[int] = None

    while True:
        size = await asyncio.to_thread(_file_size, path)
        if size and size == last_size:
            return True
        last_size = size

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        await asyncio.sleep(min(delay, remaining))
        delay = min(delay * 2, max_delay)


class _CoverEventHandler(FileSystemEventHandler):
    """Forwards file creations and renames-into-place (watchdog thread)."""

    def __init__(self, callback: Callable[[str], None]):
        self.callback = callback

    def on_created(self, event):
        if not event.is_directory:
            self.callback(event.src_path)

    def on_moved(self, event):
        # Browsers download to a temporary name and rename when complete
        if not event.is_directory:
            self.callback(event.dest_path)


class DirectoryWatcher:
    """
    Watches a single directory (non-recursive) for new files.

    Events are marshalled onto the owning loop into a bounded queue; when
    the queue is full the event is logged and dropped.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, queue_size: int = 256):
        self._loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.directory: Optional[Path] = None
        self._observer: Optional[Observer] = None
        self.dropped_count = 0

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    def start(self, directory: Path) -> None:
        """Watch ``directory``, replacing any previous watch."""
        self.stop()
        directory = Path(directory)
        observer = Observer()
        observer.schedule(_CoverEventHandler(self._on_file_event), str(directory), recursive=False)
        observer.start()
        self._observer = observer
        self.directory = directory
        logger.info(f"Watching for new covers in {directory}")

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        logger.info(f"Stopped watching {self.directory}")
        self._observer = None
        self.directory = None

    def _on_file_event(self, raw_path) -> None:
        path = Path(os.fsdecode(raw_path))
        event = FileCreatedEvent(path.name, path)
        try:
            self._loop.call_soon_threadsafe(self._enqueue, event)
        except RuntimeError:
            logger.debug(f"Event loop closed, dropping event for {path.name}")

    def _enqueue(self, event: FileCreatedEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped_count += 1
            logger.warning(f"Watch queue full, dropping event for {event.name}")


class DirectoryWatchReactor:
    """
    Turns file creation events into missing-set removals.

    Each event is handled in its own task. Only one conversion runs per
    missing entry at a time; further events for that entry while it is in
    flight are coalesced. The entry is removed only once the canonical
    file is on disk. Failures are logged and reported as events; the
    entry then stays in the missing set.

    Example:
        reactor = DirectoryWatchReactor(missing, mutator, cover_dir)
        outcome = await reactor.handle(FileCreatedEvent('mario.jpg', cover_dir / 'mario.jpg'))
    """

    def __init__(
        self,
        missing_set: MissingSet,
        mutator: MissingSetMutator,
        cover_dir: Path,
        readable_timeout: float = DEFAULT_READABLE_TIMEOUT,
        event_bus: Optional[EventBus] = None
    ):
        self.missing_set = missing_set
        self.mutator = mutator
        self.cover_dir = Path(cover_dir)
        self.readable_timeout = readable_timeout
        self.event_bus = event_bus
        self._in_flight: Dict[str, PendingConversion] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> Dict[str, PendingConversion]:
        return dict(self._in_flight)

    async def run(self, queue: asyncio.Queue) -> None:
        """Consume file events until cancelled."""
        try:
            while True:
                event = await queue.get()
                try:
                    task = asyncio.create_task(self.handle(event))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                finally:
                    queue.task_done()
        except asyncio.CancelledError:
            logger.debug("Watch reactor stopped")
            raise

    async def shutdown(self) -> None:
        """Cancel event handlers still running."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def handle(self, event: FileCreatedEvent) -> WatchOutcome:
        """Process one creation event; never raises."""
        source = Path(event.full_path)
        key = rom_key(source.stem)
        entry = self.missing_set.get(key)

        if entry is None:
            logger.debug(f"Ignoring {event.name}: not a missing cover")
            return WatchOutcome.IGNORED
        if not (is_canonical(source) or is_convertible(source)):
            logger.debug(f"Ignoring {event.name}: not a recognized image type")
            return WatchOutcome.IGNORED
        if key in self._in_flight:
            logger.debug(f"Coalescing event for {event.name}: already processing '{entry.name}'")
            return WatchOutcome.COALESCED

        pending = PendingConversion(
            key=key,
            source_path=source,
            target_path=cover_path(self.cover_dir, entry.name),
            deadline=time.monotonic() + self.readable_timeout
        )
        self._in_flight[key] = pending
        try:
            return await self._process(pending)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error handling {event.name}: {e}", exc_info=True)
            self._publish(ConversionFailedEvent(key, str(source), str(e)))
            return WatchOutcome.FAILED
        finally:
            self._in_flight.pop(key, None)

    async def _process(self, pending: PendingConversion) -> WatchOutcome:
        source = pending.source_path
        timeout = max(0.0, pending.deadline - time.monotonic())

        if not await wait_for_readable(source, timeout=timeout):
            logger.warning(f"Timed out waiting for {source} to become readable")
            self._publish(ConversionFailedEvent(pending.key, str(source), "File did not become readable"))
            return WatchOutcome.TIMED_OUT

        if is_canonical(source):
            self.mutator.remove(pending.key)
            logger.info(f"Cover found for '{pending.key}': {source.name}")
            self._publish(CoverSavedEvent(pending.key, str(source), 'dropped'))
            return WatchOutcome.REMOVED

        success, error = await asyncio.to_thread(convert_to_canonical, source, pending.target_path)
        if not success or not pending.target_path.exists():
            reason = error or "Converted file missing"
            logger.error(f"Failed to convert {source.name}: {reason}")
            self._publish(ConversionFailedEvent(pending.key, str(source), reason))
            return WatchOutcome.FAILED

        self._delete_source(source)
        self.mutator.remove(pending.key)
        self._publish(CoverSavedEvent(pending.key, str(pending.target_path), 'converted'))
        return WatchOutcome.CONVERTED

    @staticmethod
    def _delete_source(source: Path) -> None:
        try:
            source.unlink()
            logger.info(f"Deleted original file after conversion: {source}")
        except OSError as e:
            logger.warning(f"Failed to delete original file {source}: {e}")

    def _publish(self, event) -> None:
        if self.event_bus is not None:
            self.event_bus.publish_nowait(event)
