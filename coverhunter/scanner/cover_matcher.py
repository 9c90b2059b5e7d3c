"""Cover extension recognition and existence checks."""

from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

from coverhunter.scanner.rom_types import rom_key


# Every format that counts as "this ROM already has a cover"
RECOGNIZED_COVER_EXTENSIONS: Tuple[str, ...] = (
    '.png', '.jpg', '.jpeg', '.bmp', '.gif', '.tiff', '.tif', '.webp', '.avif'
)

# The single format all covers are normalized to
CANONICAL_EXTENSION = '.png'

# Formats the watcher converts to the canonical one
CONVERTIBLE_EXTENSIONS: Tuple[str, ...] = tuple(
    ext for ext in RECOGNIZED_COVER_EXTENSIONS if ext != CANONICAL_EXTENSION
)


def normalize_extension(extension: str) -> str:
    """
    Normalize an extension to lowercase with a leading dot.

    Examples:
        >>> normalize_extension('PNG')
        '.png'
        >>> normalize_extension('.Jpg')
        '.jpg'
    """
    ext = extension.strip().lower()
    if not ext:
        raise ValueError("Extension cannot be empty")
    return ext if ext.startswith('.') else f'.{ext}'


def normalize_extensions(extensions: Iterable[str]) -> Tuple[str, ...]:
    """Normalize and de-duplicate extensions, preserving order."""
    seen = []
    for ext in extensions:
        normalized = normalize_extension(ext)
        if normalized not in seen:
            seen.append(normalized)
    return tuple(seen)


def cover_path(cover_dir: Path, base_name: str, extension: str = CANONICAL_EXTENSION) -> Path:
    """Build the path of a cover for a ROM base name."""
    return Path(cover_dir) / f"{base_name}{normalize_extension(extension)}"


def index_covers(
    cover_dir: Path,
    extensions: Sequence[str] = RECOGNIZED_COVER_EXTENSIONS
) -> Dict[str, Path]:
    """
    Map ROM keys to the cover files present in a directory.

    The directory is listed once. Base names and extensions compare
    case-insensitively, so ``Mario.JPG`` covers the ROM ``mario``. When a
    ROM has several covers, the one whose extension comes first in
    ``extensions`` wins.

    Args:
        cover_dir: Directory holding cover images
        extensions: Recognized cover extensions

    Returns:
        Dictionary of ROM key to cover path (empty if the directory is missing)
    """
    cover_dir = Path(cover_dir)
    if not cover_dir.is_dir():
        return {}

    rank = {ext: i for i, ext in enumerate(normalize_extensions(extensions))}
    best: Dict[str, Tuple[int, Path]] = {}
    for entry in cover_dir.iterdir():
        position = rank.get(entry.suffix.lower())
        if position is None or not entry.is_file():
            continue
        key = rom_key(entry.stem)
        if key not in best or position < best[key][0]:
            best[key] = (position, entry)

    return {key: path for key, (_, path) in best.items()}


def find_existing_cover(
    cover_dir: Path,
    base_name: str,
    extensions: Sequence[str] = RECOGNIZED_COVER_EXTENSIONS
) -> Optional[Path]:
    """
    Find an existing cover file for a ROM.

    Args:
        cover_dir: Directory holding cover images
        base_name: ROM filename without extension
        extensions: Recognized cover extensions

    Returns:
        Path of the preferred cover found, or None
    """
    return index_covers(cover_dir, extensions).get(rom_key(base_name))


def is_canonical(path: Path) -> bool:
    """Check whether a file is already in the canonical cover format."""
    return Path(path).suffix.lower() == CANONICAL_EXTENSION


def is_convertible(path: Path) -> bool:
    """Check whether a file is a recognized non-canonical cover format."""
    return Path(path).suffix.lower() in CONVERTIBLE_EXTENSIONS
