"""
Cover session

Wires the missing set, debouncer, search orchestrator and directory
watch together on one event loop. Frontends (console UI, CLI) talk to
this object only and observe it through the event bus.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional, Tuple

from coverhunter.api.base import ImageDescriptor, ProviderId, ProviderRegistry
from coverhunter.api.web_search import build_web_search_url, parse_web_engine
from coverhunter.config.settings import SettingsStore
from coverhunter.mame.descriptions import (
    MameDataCorruptError,
    MameDataNotFoundError,
    load_mame_descriptions,
)
from coverhunter.media.downloader import ImageSaver
from coverhunter.scanner.cover_matcher import (
    CANONICAL_EXTENSION,
    RECOGNIZED_COVER_EXTENSIONS,
    cover_path,
    find_existing_cover,
)
from coverhunter.scanner.missing_scanner import compute_missing, list_rom_files
from coverhunter.scanner.rom_types import RomEntry
from coverhunter.ui.event_bus import EventBus
from coverhunter.ui.events import CoverSavedEvent
from coverhunter.workflow.debouncer import SelectionDebouncer
from coverhunter.workflow.display import ALL_FOUND_STATUS, IDLE_STATUS, DisplayState
from coverhunter.workflow.missing_set import MissingSet, MissingSetMutator
from coverhunter.workflow.query import build_search_query, normalize
from coverhunter.workflow.search_orchestrator import CredentialPrompter, SearchOrchestrator
from coverhunter.workflow.watch_reactor import DirectoryWatcher, DirectoryWatchReactor

logger = logging.getLogger(__name__)


class CoverSession:
    """
    One interactive cover-hunting session.

    Selecting an entry cancels the running search at once and, after the
    debounce interval, searches for the entry's normalized name. Removing
    the selected entry (manually, by saving a cover, or because a cover
    appeared in the folder) moves the selection to its neighbour.

    Example:
        session = CoverSession(settings, event_bus, registry)
        await session.start()
        await session.rescan_directory(Path('roms/snes'), Path('covers/snes'))
        session.select('Super Mario World (USA)')
        ...
        await session.stop()
    """

    def __init__(
        self,
        settings: SettingsStore,
        event_bus: EventBus,
        registry: ProviderRegistry,
        prompter: Optional[CredentialPrompter] = None,
        saver: Optional[ImageSaver] = None,
        alt_lookup: Optional[Mapping[str, str]] = None,
        open_url: Optional[Callable[[str], object]] = None
    ):
        """
        Args:
            settings: Settings and credential store
            event_bus: Bus receiving all state change events
            registry: Image providers
            prompter: Interactive credential entry (None = non-interactive)
            saver: Downloads chosen candidates (needed for ``save_image``)
            alt_lookup: Alternate search names, e.g. MAME descriptions
            open_url: Opens web search pages for browser-only engines
        """
        self.settings = settings
        self.event_bus = event_bus
        self.saver = saver
        self.alt_lookup = alt_lookup
        self.open_url = open_url
        self.cover_dir: Optional[Path] = None

        self.display = DisplayState(event_bus, thumbnail_size=settings.thumbnail_size)
        self.missing_set = MissingSet(event_bus)
        self.orchestrator = SearchOrchestrator(
            registry, settings, self.display, prompter=prompter, event_bus=event_bus
        )
        self.mutator = MissingSetMutator(self.missing_set, self.display, self._cancel_search)
        self.debouncer = SelectionDebouncer(
            current_selection=lambda: self.missing_set.selected_key,
            on_cancel=self._cancel_search,
            on_clear=self.display.clear,
            on_fire=self._launch_search,
            interval=settings.debounce_seconds
        )
        self.missing_set.add_selection_listener(self.debouncer.selection_changed)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._bus_task: Optional[asyncio.Task] = None
        self._reactor_task: Optional[asyncio.Task] = None
        self.watcher: Optional[DirectoryWatcher] = None
        self.reactor: Optional[DirectoryWatchReactor] = None
        self._watch_enabled = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, watch: bool = True) -> None:
        """
        Bind to the running loop and start background processing.

        Args:
            watch: Watch the cover directory for new images
        """
        loop = asyncio.get_running_loop()
        self._loop = loop
        self.event_bus.bind_loop(loop)
        self.debouncer.bind_loop(loop)

        if not self.event_bus.is_processing:
            self._bus_task = asyncio.create_task(self.event_bus.process_events())

        if self.alt_lookup is None and self.settings.use_mame_descriptions:
            self.alt_lookup = await self._load_mame_lookup()

        self._watch_enabled = watch
        if watch:
            self.watcher = DirectoryWatcher(loop, queue_size=self.settings.watch_queue_size)
            self.reactor = DirectoryWatchReactor(
                self.missing_set,
                self.mutator,
                self.cover_dir or Path('.'),
                readable_timeout=self.settings.readable_timeout,
                event_bus=self.event_bus
            )
            self._reactor_task = asyncio.create_task(self.reactor.run(self.watcher.queue))
            if self.cover_dir is not None:
                await self._restart_watch()

        self.display.set_status(IDLE_STATUS)

    async def stop(self) -> None:
        """Cancel searches and timers, stop watching, flush events."""
        self.debouncer.shutdown()
        await self.orchestrator.shutdown()

        if self.watcher is not None and self.watcher.is_watching:
            await asyncio.to_thread(self.watcher.stop)
        if self._reactor_task is not None:
            self._reactor_task.cancel()
            await asyncio.gather(self._reactor_task, return_exceptions=True)
            self._reactor_task = None
        if self.reactor is not None:
            await self.reactor.shutdown()

        await self.event_bus.stop()
        if self._bus_task is not None:
            self._bus_task.cancel()
            await asyncio.gather(self._bus_task, return_exceptions=True)
            self._bus_task = None

    async def _load_mame_lookup(self) -> Optional[Mapping[str, str]]:
        xml_path = self.settings.mame_xml_path
        if xml_path is None:
            logger.warning("MAME descriptions enabled but paths.mame_xml is not set")
            return None
        try:
            return await asyncio.to_thread(load_mame_descriptions, xml_path)
        except (MameDataNotFoundError, MameDataCorruptError) as e:
            logger.warning(f"Searching without MAME descriptions: {e}")
            return None

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def rescan(
        self,
        rom_files: Iterable[Path],
        cover_dir: Path,
        recognized_extensions: Tuple[str, ...] = RECOGNIZED_COVER_EXTENSIONS
    ) -> int:
        """
        Rebuild the missing set from a ROM list.

        Returns:
            Number of ROMs missing a cover

        Raises:
            ScannerError: If ``cover_dir`` does not exist
        """
        cover_dir = Path(cover_dir)
        rom_files = list(rom_files)
        missing = await asyncio.to_thread(compute_missing, rom_files, cover_dir, recognized_extensions)

        self.debouncer.shutdown()
        self._cancel_search()
        self.missing_set.reset(missing)

        if self.cover_dir != cover_dir:
            self.cover_dir = cover_dir
            if self._watch_enabled:
                await self._restart_watch()

        if missing:
            self.display.reset_idle(f"Found {len(missing)} missing covers.")
        else:
            self.display.reset_idle(ALL_FOUND_STATUS)
        return len(missing)

    async def rescan_directory(self, rom_dir: Path, cover_dir: Path) -> int:
        """
        List the ROM directory and rebuild the missing set.

        Raises:
            ScannerError: Missing directories or no extensions configured
        """
        rom_files = await asyncio.to_thread(list_rom_files, Path(rom_dir), self.settings.supported_extensions)
        return await self.rescan(rom_files, cover_dir)

    async def _restart_watch(self) -> None:
        if self.watcher is None or self.cover_dir is None:
            return
        if self.reactor is not None:
            self.reactor.cover_dir = self.cover_dir
        try:
            # Stopping the previous observer joins its thread
            await asyncio.to_thread(self.watcher.start, self.cover_dir)
        except OSError as e:
            logger.error(f"Could not watch {self.cover_dir}: {e}")

    # ------------------------------------------------------------------
    # Selection and removal
    # ------------------------------------------------------------------

    def select(self, key: Optional[str]) -> bool:
        return self.missing_set.select(key)

    def select_index(self, index: Optional[int]) -> bool:
        return self.missing_set.select_index(index)

    def remove(self, key: str) -> bool:
        return self.mutator.remove(key)

    def remove_selected(self) -> bool:
        key = self.missing_set.selected_key
        if key is None:
            return False
        return self.mutator.remove(key)

    def set_extra_query(self, text: str) -> None:
        """Change the words appended to every query and search again."""
        self.settings.set('search.extra_query', text.strip(), persist=True)
        if self.missing_set.selected_key is not None:
            self.debouncer.selection_changed()

    def query_for(self, entry: RomEntry) -> str:
        term = normalize(entry.name, self.alt_lookup)
        return build_search_query(term, self.settings.extra_query)

    def cover_target(self, key: str) -> Optional[Path]:
        """Canonical cover path for a missing entry."""
        entry = self.missing_set.get(key)
        if entry is None or self.cover_dir is None:
            return None
        existing = find_existing_cover(self.cover_dir, entry.name, (CANONICAL_EXTENSION,))
        return existing or cover_path(self.cover_dir, entry.name)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _cancel_search(self) -> None:
        request = self.orchestrator.current_request
        if self.orchestrator.cancel_current():
            logger.debug(f"Cancelled search for '{request.rom_key}'")
            self.display.set_status(IDLE_STATUS)

    def _launch_search(self, key: str) -> None:
        entry = self.missing_set.get(key)
        if entry is None:
            return
        query = self.query_for(entry)
        provider_name = self.settings.provider_name

        try:
            provider_id = ProviderId.parse(provider_name)
        except ValueError:
            self._open_web_search(provider_name, query)
            return

        self.orchestrator.start(entry.key, query, provider_id)

    def _open_web_search(self, engine_name: str, query: str) -> None:
        try:
            engine = parse_web_engine(engine_name)
        except ValueError as e:
            logger.error(str(e))
            self.display.set_status(f"Unknown search provider '{engine_name}'")
            return

        url = build_web_search_url(engine, query)
        logger.info(f"Web search: {url}")
        if self.open_url is not None:
            self.open_url(url)
        self.display.set_status(f"Opened {engine.value} search: {query}")

    # ------------------------------------------------------------------
    # Saving candidates
    # ------------------------------------------------------------------

    async def save_image(
        self,
        descriptor: ImageDescriptor,
        overwrite: bool = False
    ) -> Tuple[bool, Optional[str]]:
        """
        Save a candidate as the selected entry's cover and remove the entry.

        Returns:
            Tuple of (success: bool, error_message: str or None)
        """
        entry = self.missing_set.selected_entry
        if entry is None:
            return False, "No ROM selected"
        if descriptor.is_placeholder:
            return False, "No image to save"
        if self.saver is None:
            return False, "Saving images is not available"

        target = self.cover_target(entry.key)
        if target is None:
            return False, "No cover folder selected"

        self.display.set_status(f"Saving cover for {entry.name}...", is_searching=True)
        success, error = await self.saver.save(descriptor.source_url, target, overwrite=overwrite)
        if not success:
            self.display.set_status(f"Could not save cover for {entry.name}: {error}")
            return False, error

        self.event_bus.publish_nowait(CoverSavedEvent(entry.key, str(target), 'download'))
        self.display.set_status(f"Saved {target.name}")
        # The watcher may have removed the entry already when the file landed
        self.mutator.remove(entry.key)
        return True, None
