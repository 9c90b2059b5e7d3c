"""ROM entry data type."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RomEntry:
    """
    A ROM that has no cover yet.

    Attributes:
        name: ROM filename without extension (display form, original case)
    """
    name: str

    @property
    def key(self) -> str:
        """Case-insensitive identity key."""
        return rom_key(self.name)

    @classmethod
    def from_path(cls, rom_path: Path) -> "RomEntry":
        return cls(name=Path(rom_path).stem)

    def __str__(self) -> str:
        return self.name


def rom_key(name: str) -> str:
    """Fold a ROM base name to its identity key."""
    return name.casefold()
