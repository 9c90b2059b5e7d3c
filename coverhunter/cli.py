"""Command-line interface for coverhunter."""

import sys
import logging
import argparse
import asyncio
import webbrowser
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

from coverhunter import __version__
from coverhunter.api.base import ProviderId
from coverhunter.api.error_handler import ProviderError, SearchCancelled
from coverhunter.api.web_search import WebEngine, build_web_search_url
from coverhunter.config.loader import resolve_config_path
from coverhunter.config.validator import VALID_PROVIDERS
from coverhunter.context import AppContext
from coverhunter.scanner.missing_scanner import ScannerError
from coverhunter.ui.console import ConsoleApp
from coverhunter.ui.events import CoverSavedEvent, ConversionFailedEvent
from coverhunter.ui.prompts import ConsoleCredentialPrompter
from coverhunter.workflow.cancellation import CancellationToken
from coverhunter.workflow.display import DisplayState
from coverhunter.workflow.query import build_search_query, normalize
from coverhunter.workflow.search_orchestrator import SearchOrchestrator
from coverhunter.workflow.session import CoverSession


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog='coverhunter',
        description='Find ROMs without cover art and fetch the missing covers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List ROMs that have no cover
  coverhunter --roms ~/roms/snes --covers ~/covers/snes

  # Browse missing covers and pick images interactively
  coverhunter --roms ~/roms/snes --covers ~/covers/snes --interactive

  # Convert covers dropped into the folder as they arrive
  coverhunter --roms ~/roms/snes --covers ~/covers/snes --watch

  # Search images for one ROM name
  coverhunter --search "Super Mario World (USA)"

  # Open a browser image search instead
  coverhunter --search "Super Mario World (USA)" --web
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        help='Path to config file (default: ./coverhunter.yaml)'
    )

    parser.add_argument(
        '--roms',
        type=str,
        help='ROM folder (overrides paths.roms)'
    )

    parser.add_argument(
        '--covers',
        type=str,
        help='Cover image folder (overrides paths.covers)'
    )

    parser.add_argument(
        '--provider',
        choices=VALID_PROVIDERS,
        help='Image search provider (overrides search.provider)'
    )

    parser.add_argument(
        '--search',
        metavar='NAME',
        type=str,
        help='Search cover images for a single ROM name and exit'
    )

    parser.add_argument(
        '--watch',
        action='store_true',
        help='Keep running and process images saved into the cover folder'
    )

    parser.add_argument(
        '--interactive',
        action='store_true',
        help='Interactive console: select ROMs, browse and save candidates'
    )

    parser.add_argument(
        '--web',
        action='store_true',
        help='Open the search in a web browser (Bing unless --provider GoogleWeb)'
    )

    return parser


def _setup_logging(config: dict) -> None:
    """
    Setup logging configuration from config.

    Args:
        config: Configuration dictionary
    """
    logging_config = config.get('logging', {})

    level_str = str(logging_config.get('level', 'INFO')).upper()
    level = getattr(logging, level_str, logging.INFO)

    handlers = []

    if logging_config.get('console', True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
        handlers.append(console_handler)

    # File handler (if configured); truncated on every start
    log_file = logging_config.get('file')
    if log_file:
        try:
            log_path = Path(log_file).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_path, mode='w', encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            handlers.append(file_handler)
        except (OSError, PermissionError) as e:
            print(f"Error: Could not create log file '{log_file}': {e}", file=sys.stderr)
            sys.exit(1)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    # httpx logs full request URLs at DEBUG, which include the API key
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    # Pillow chunk parsing and watchdog inotify chatter
    logging.getLogger('PIL').setLevel(logging.INFO)
    logging.getLogger('watchdog').setLevel(logging.WARNING)


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for coverhunter CLI.

    Args:
        argv: Command-line arguments (default: sys.argv)

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        context = AppContext.create(resolve_config_path(args.config))
    except Exception as e:
        print(f"Unexpected error loading config: {e}", file=sys.stderr)
        return 1

    _setup_logging(context.settings.config)

    # Apply CLI overrides (not persisted)
    if args.roms:
        context.settings.set('paths.roms', args.roms)
    if args.covers:
        context.settings.set('paths.covers', args.covers)
    if args.provider:
        context.settings.set('search.provider', args.provider)

    try:
        return asyncio.run(run(context, args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"\nFatal error: {e}", file=sys.stderr)
        return 1


async def run(context: AppContext, args: argparse.Namespace) -> int:
    """
    Run the selected mode (async).

    Args:
        context: Application context
        args: Parsed command-line arguments

    Returns:
        Exit code
    """
    try:
        if args.search:
            if args.web:
                return _open_web_search(context, args.search)
            return await run_single_search(context, args.search)
        return await run_session(context, args)
    finally:
        await context.close()


def _open_web_search(context: AppContext, name: str) -> int:
    # Only an explicit GoogleWeb provider switches away from Bing
    engines = {engine.value: engine for engine in WebEngine}
    engine = engines.get(context.settings.provider_name, WebEngine.BING)

    query = build_search_query(normalize(name), context.settings.extra_query)
    url = build_web_search_url(engine, query)
    print(url)
    webbrowser.open(url)
    return 0


async def run_single_search(context: AppContext, name: str) -> int:
    """Search images for one ROM name and print the candidates."""
    settings = context.settings
    try:
        provider_id = ProviderId.parse(settings.provider_name)
    except ValueError:
        return _open_web_search(context, name)

    orchestrator = SearchOrchestrator(
        context.build_registry(),
        settings,
        DisplayState(),
        prompter=ConsoleCredentialPrompter(settings)
    )
    query = build_search_query(normalize(name), settings.extra_query)
    print(f"Searching {provider_id.value} for {query}")

    try:
        images = await orchestrator.search(query, provider_id, CancellationToken(label=name))
    except (ProviderError, SearchCancelled) as e:
        print(f"Search failed: {e}", file=sys.stderr)
        return 1

    if not images:
        print("No Cover Image Found")
        return 0

    print(f"Found {len(images)} images.")
    for i, image in enumerate(images, 1):
        print(f"{i:2d}. {image.display_name} ({image.width}x{image.height}, {image.size_label}, {image.mime_type})")
        print(f"    {image.source_url}")
    return 0


async def run_session(context: AppContext, args: argparse.Namespace) -> int:
    """Scan for missing covers, then list, watch or run the console."""
    settings = context.settings
    rom_dir = settings.get('paths.roms')
    cover_dir = settings.get('paths.covers')
    if not rom_dir or not cover_dir:
        print("Error: ROM and cover folders are required (--roms/--covers or paths.* in config)", file=sys.stderr)
        return 1

    rom_dir = Path(rom_dir).expanduser()
    cover_dir = Path(cover_dir).expanduser()

    session = CoverSession(
        settings,
        context.event_bus,
        context.build_registry(),
        saver=context.build_saver(),
        open_url=webbrowser.open
    )

    watch = args.watch or args.interactive
    await session.start(watch=watch)
    try:
        try:
            count = await session.rescan_directory(rom_dir, cover_dir)
        except ScannerError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        if args.interactive:
            app = ConsoleApp(session, rom_dir=rom_dir)
            try:
                return await app.run()
            finally:
                app.close()

        if not args.watch:
            for entry in session.missing_set.entries:
                print(entry.name)
            print(f"{count} ROMs missing covers", file=sys.stderr)
            return 0

        context.event_bus.subscribe(CoverSavedEvent, lambda e: print(f"Cover ready: {e.path}"))
        context.event_bus.subscribe(ConversionFailedEvent, lambda e: print(f"Failed: {e.path}: {e.reason}", file=sys.stderr))
        print(f"{count} ROMs missing covers. Watching {cover_dir} (Ctrl-C to stop)")
        while len(session.missing_set) > 0:
            await asyncio.sleep(0.5)
        print("All covers found!")
        return 0
    finally:
        await session.stop()


if __name__ == '__main__':
    sys.exit(main())
