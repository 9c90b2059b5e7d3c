"""Missing cover detection."""

import logging
from pathlib import Path
from typing import Iterable, List, Sequence

from coverhunter.scanner.cover_matcher import (
    RECOGNIZED_COVER_EXTENSIONS,
    index_covers,
    normalize_extensions,
)
from coverhunter.scanner.rom_types import RomEntry

logger = logging.getLogger(__name__)


class ScannerError(Exception):
    """Precondition failures while scanning ROM or cover directories."""
    pass


def list_rom_files(rom_dir: Path, supported_extensions: Iterable[str]) -> List[Path]:
    """
    List ROM files in a directory.

    Only the top level of the directory is scanned. Matching on extension
    is case-insensitive and the result is sorted by path.

    Args:
        rom_dir: ROM directory
        supported_extensions: ROM extensions (with or without leading dot)

    Returns:
        Sorted list of ROM file paths

    Raises:
        ScannerError: If the directory is unusable or no extensions are configured
    """
    extensions = normalize_extensions(supported_extensions)
    if not extensions:
        raise ScannerError(
            "No supported ROM file extensions configured. Please check your settings."
        )

    rom_dir = Path(rom_dir)
    if not rom_dir.exists():
        raise ScannerError(f"ROM folder does not exist: {rom_dir}")
    if not rom_dir.is_dir():
        raise ScannerError(f"ROM path is not a directory: {rom_dir}")

    try:
        entries = list(rom_dir.iterdir())
    except PermissionError:
        raise ScannerError(f"Access denied to ROM folder: {rom_dir}")
    except OSError as e:
        raise ScannerError(f"Failed to read ROM folder: {e}")

    rom_files = sorted(
        entry for entry in entries
        if entry.is_file() and entry.suffix.lower() in extensions
    )
    logger.info(f"Found {len(rom_files)} ROM files with supported extensions in {rom_dir}")
    return rom_files


def compute_missing(
    rom_files: Iterable[Path],
    cover_dir: Path,
    recognized_extensions: Sequence[str] = RECOGNIZED_COVER_EXTENSIONS
) -> List[RomEntry]:
    """
    Find ROMs that have no cover in any recognized format.

    Input order is preserved in the output. ROMs that share a base name
    (e.g. ``Game.nes`` and ``Game.zip``) appear once.

    Args:
        rom_files: ROM file paths, normally sorted by the caller
        cover_dir: Directory holding cover images
        recognized_extensions: Extensions that count as a cover

    Returns:
        RomEntry list for ROMs lacking a cover

    Raises:
        ScannerError: If the cover directory does not exist
    """
    cover_dir = Path(cover_dir)
    if not cover_dir.exists():
        raise ScannerError(f"Image folder does not exist: {cover_dir}")
    if not cover_dir.is_dir():
        raise ScannerError(f"Image path is not a directory: {cover_dir}")

    extensions = normalize_extensions(recognized_extensions)
    logger.info("Starting check for missing covers (all recognized formats)")

    covers = index_covers(cover_dir, extensions)
    missing: List[RomEntry] = []
    seen = set()
    total = 0

    for rom_file in rom_files:
        total += 1
        entry = RomEntry.from_path(Path(rom_file))
        if entry.key in seen:
            continue
        seen.add(entry.key)

        if entry.key not in covers:
            missing.append(entry)

    logger.info(f"Finished scanning {total} ROMs. Found {len(missing)} missing covers.")
    return missing
