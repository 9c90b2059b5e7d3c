"""
Interactive console frontend

A line-oriented UI over CoverSession: the missing list and the candidate
images are rendered as rich tables, commands are read from stdin on a
worker thread, and state changes arrive through the event bus.
"""

import asyncio
import logging
import webbrowser
from collections import deque
from typing import Deque, Optional, Tuple

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from coverhunter.api.base import ProviderId
from coverhunter.api.web_search import build_web_search_url, parse_web_engine
from coverhunter.ui.events import (
    ConversionFailedEvent,
    CoverSavedEvent,
    DisplayListChangedEvent,
    LogEntryEvent,
    MissingSetChangedEvent,
    SearchFailedEvent,
    StatusChangedEvent,
)
from coverhunter.ui.event_log_handler import setup_event_logging
from coverhunter.ui.prompts import PromptSystem
from coverhunter.workflow.session import CoverSession

logger = logging.getLogger(__name__)

LOG_HISTORY_SIZE = 200

HELP_TEXT = """Commands:
  <n>            select missing entry n
  l              list missing entries
  i              list candidate images for the selection
  s <n>          save candidate image n as the cover
  r [n]          remove the selected entry (or entry n) from the list
  q <words>      set extra query words ('q' alone clears them)
  w [bing|google] open a browser image search for the selection
  rescan         rescan the ROM and cover folders
  log [n]        show the last n log messages (default 20)
  h              show this help
  x              quit"""


class ConsoleApp:
    """
    Console frontend for a CoverSession.

    Also acts as the session's credential prompter: when a search needs an
    API key, the question is printed and the next input line answers it,
    so stdin is only ever read from one place.
    """

    def __init__(
        self,
        session: CoverSession,
        rom_dir=None,
        console: Optional[Console] = None,
        prompts: Optional[PromptSystem] = None,
        log_level: int = logging.INFO
    ):
        self.session = session
        self.rom_dir = rom_dir
        self.console = console or Console()
        self.prompts = prompts or PromptSystem()
        self.log_level = log_level
        self.log_history: Deque[LogEntryEvent] = deque(maxlen=LOG_HISTORY_SIZE)
        self._running = False
        self._credential_request: Optional[Tuple[ProviderId, asyncio.Future]] = None

        session.orchestrator.prompter = self
        self._subscriptions = [
            (StatusChangedEvent, self._on_status),
            (DisplayListChangedEvent, self._on_display_list),
            (MissingSetChangedEvent, self._on_missing_changed),
            (SearchFailedEvent, self._on_search_failed),
            (CoverSavedEvent, self._on_cover_saved),
            (ConversionFailedEvent, self._on_conversion_failed),
            (LogEntryEvent, self.log_history.append),
        ]
        for event_type, callback in self._subscriptions:
            session.event_bus.subscribe(event_type, callback)

    def close(self) -> None:
        """Stop rendering events; the session may still be flushing its own."""
        for event_type, callback in self._subscriptions:
            self.session.event_bus.unsubscribe(event_type, callback)
        self._subscriptions = []
        if self.session.orchestrator.prompter is self:
            self.session.orchestrator.prompter = None

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_missing(self) -> None:
        missing = self.session.missing_set
        if len(missing) == 0:
            self.console.print("[green]All covers found![/green]")
            return

        table = Table(title=f"Missing covers ({len(missing)})", box=box.SIMPLE)
        table.add_column("#", justify="right", style="cyan")
        table.add_column("ROM")
        selected = missing.selected_index
        for i, entry in enumerate(missing.entries):
            marker = "[bold yellow]>[/bold yellow] " if i == selected else "  "
            table.add_row(str(i + 1), f"{marker}{escape(entry.name)}")
        self.console.print(table)

    def render_images(self) -> None:
        display = self.session.display
        if not display.images:
            self.console.print("[dim]No candidate images[/dim]")
            return

        table = Table(title=escape(display.query_label or "Candidates"), box=box.SIMPLE)
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Name")
        table.add_column("Size", justify="right")
        table.add_column("Dimensions", justify="right")
        table.add_column("Type")
        for i, image in enumerate(display.images):
            if image.is_placeholder:
                table.add_row("-", escape(image.display_name), "", "", "")
                continue
            table.add_row(
                str(i + 1),
                escape(image.display_name),
                image.size_label,
                f"{image.width}x{image.height}",
                image.mime_type
            )
        self.console.print(table)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_status(self, event: StatusChangedEvent) -> None:
        style = "yellow" if event.is_searching else "blue"
        self.console.print(f"[{style}]{escape(event.message)}[/{style}]")

    def _on_display_list(self, event: DisplayListChangedEvent) -> None:
        if event.images:
            self.render_images()

    def _on_missing_changed(self, event: MissingSetChangedEvent) -> None:
        if event.action == 'removed':
            self.console.print(f"[green]Removed[/green] {escape(event.name or '')} ({event.total} remaining)")

    def _on_search_failed(self, event: SearchFailedEvent) -> None:
        self.console.print(f"[red]{event.provider} search failed:[/red] {escape(event.message)}")

    def _on_cover_saved(self, event: CoverSavedEvent) -> None:
        self.console.print(f"[green]Cover saved:[/green] {escape(event.path)}")

    def _on_conversion_failed(self, event: ConversionFailedEvent) -> None:
        self.console.print(f"[red]Could not use {escape(event.path)}:[/red] {escape(event.reason)}")

    # ------------------------------------------------------------------
    # Credential prompting
    # ------------------------------------------------------------------

    async def prompt_for_credential(self, provider_id: ProviderId) -> bool:
        """Ask on the console; the next input line answers."""
        future = asyncio.get_running_loop().create_future()
        self._credential_request = (provider_id, future)
        self.console.print(
            f"[yellow]{provider_id.value} API key is not set.[/yellow] "
            "Configure it now? \\[Y/n]"
        )
        try:
            return await future
        finally:
            self._credential_request = None

    async def _answer_credential(self, line: str) -> None:
        provider_id, future = self._credential_request
        supplied = False
        if line.strip().lower() in ('', 'y', 'yes'):
            api_key = await asyncio.to_thread(self.prompts.input_text, f"{provider_id.value} API key")
            engine_id = None
            if api_key:
                engine_id = await asyncio.to_thread(
                    self.prompts.input_text,
                    "Search engine ID",
                    self.session.settings.google_search_engine_id or None
                )
            if api_key and engine_id:
                supplied = self.session.settings.set_credential(provider_id, api_key, search_engine_id=engine_id)
        if not future.done():
            future.set_result(supplied)

    # ------------------------------------------------------------------
    # Command loop
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Read and execute commands until the user quits."""
        self._running = True
        log_handler = setup_event_logging(
            self.session.event_bus,
            level=self.log_level,
            format_string='%(asctime)s %(levelname)s [%(name)s] %(message)s'
        )
        self.render_missing()
        self.console.print("Type 'h' for help.")

        try:
            while self._running:
                line = await asyncio.to_thread(self.prompts.input_text, "coverhunter>", None, None, True)
                if line is None:
                    break

                if self._credential_request is not None and not self._credential_request[1].done():
                    await self._answer_credential(line)
                    continue

                try:
                    await self.execute(line)
                except Exception as e:
                    logger.error(f"Command failed: {e}", exc_info=True)
                    self.console.print(f"[red]Error:[/red] {escape(str(e))}")
        finally:
            logging.root.removeHandler(log_handler)

        return 0

    async def execute(self, line: str) -> None:
        """Execute a single command line."""
        command, _, argument = line.strip().partition(' ')
        command = command.lower()
        argument = argument.strip()

        if not command:
            return
        if command.isdigit():
            self._select_number(int(command))
        elif command == 'l':
            self.render_missing()
        elif command == 'i':
            self.render_images()
        elif command == 's':
            await self._save(argument)
        elif command == 'r':
            self._remove(argument)
        elif command == 'q':
            self.session.set_extra_query(argument)
            self.console.print(f"Extra query: '{argument}'")
        elif command == 'w':
            self._web_search(argument or 'bing')
        elif command == 'rescan':
            await self._rescan()
        elif command == 'log':
            await self._show_log(argument)
        elif command == 'h':
            self.console.print(HELP_TEXT, markup=False)
        elif command == 'x':
            self._running = False
        else:
            self.console.print(f"Unknown command '{command}'. Type 'h' for help.")

    def _select_number(self, number: int) -> None:
        if not self.session.select_index(number - 1):
            self.console.print(f"No entry {number}")
            return
        entry = self.session.missing_set.selected_entry
        self.console.print(f"Selected [bold]{escape(entry.name)}[/bold]")

    def _remove(self, argument: str) -> None:
        if argument:
            if not argument.isdigit():
                self.console.print("Usage: r [n]")
                return
            index = int(argument) - 1
            entries = self.session.missing_set.entries
            if not 0 <= index < len(entries):
                self.console.print(f"No entry {argument}")
                return
            self.session.remove(entries[index].key)
        elif not self.session.remove_selected():
            self.console.print("Nothing selected")

    async def _save(self, argument: str) -> None:
        images = self.session.display.images
        if not argument.isdigit() or not 0 < int(argument) <= len(images):
            self.console.print("Usage: s <n> (see 'i' for candidates)")
            return

        descriptor = images[int(argument) - 1]
        entry = self.session.missing_set.selected_entry
        if entry is None:
            self.console.print("Nothing selected")
            return

        overwrite = False
        target = self.session.cover_target(entry.key)
        if target is not None and target.exists():
            overwrite = await asyncio.to_thread(
                self.prompts.confirm,
                f"The file '{target.name}' already exists. Overwrite?",
                'n'
            )
            if not overwrite:
                return

        success, error = await self.session.save_image(descriptor, overwrite=overwrite)
        if not success:
            self.console.print(f"[red]Save failed:[/red] {escape(str(error))}")

    def _web_search(self, engine_name: str) -> None:
        entry = self.session.missing_set.selected_entry
        if entry is None:
            self.console.print("Nothing selected")
            return
        try:
            engine = parse_web_engine(engine_name)
        except ValueError:
            self.console.print("Usage: w [bing|google]")
            return
        url = build_web_search_url(engine, self.session.query_for(entry))
        self.console.print(url, markup=False)
        webbrowser.open(url)

    async def _rescan(self) -> None:
        if self.rom_dir is None or self.session.cover_dir is None:
            self.console.print("No ROM folder configured")
            return
        count = await self.session.rescan_directory(self.rom_dir, self.session.cover_dir)
        self.console.print(f"{count} ROMs missing covers")
        self.render_missing()

    async def _show_log(self, argument: str) -> None:
        if argument and not argument.isdigit():
            self.console.print("Usage: log [n]")
            return
        count = int(argument) if argument else 20
        # Records logged just before the command may still be queued
        await self.session.event_bus.drain()

        entries = list(self.log_history)[-count:] if count else []
        if not entries:
            self.console.print("[dim]No log messages[/dim]")
            return
        for entry in entries:
            style = "dim"
            if entry.level >= logging.ERROR:
                style = "red"
            elif entry.level >= logging.WARNING:
                style = "yellow"
            self.console.print(f"[{style}]{escape(entry.message)}[/{style}]")
